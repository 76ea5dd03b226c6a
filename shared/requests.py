"""
Request parsing for the marketplace functions.

Function bodies arrive as loosely-typed JSON using the storefront's camelCase
keys. Each function declares a FunctionRequest subclass; ``parse`` turns the
body into that model or raises ValidationError, so business logic only ever
sees validated input.
"""

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from shared.errors import ValidationError


class FunctionRequest(BaseModel):
    """
    Base class for function request bodies.

    Subclasses list the fields that must be present and non-empty in
    ``required_fields`` and the message to report when one is missing.
    ``check`` can be overridden for rules beyond presence.
    """

    required_fields: ClassVar[tuple[str, ...]] = ()
    missing_message: ClassVar[str] = "Missing required fields"

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )

    @classmethod
    def parse(cls, body: Any):
        """
        Validate a decoded JSON body.

        Raises:
            ValidationError: If the body is not an object, a field has the
                wrong type, or a required field is missing or empty
        """
        if body is None:
            body = {}
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")

        try:
            request = cls.model_validate(body)
        except PydanticValidationError as e:
            raise ValidationError(_describe(e)) from e

        if any(not getattr(request, name) for name in cls.required_fields):
            raise ValidationError(cls.missing_message)

        request.check()
        return request

    def check(self) -> None:
        """Extra validation after the schema passes. Raise ValidationError to reject."""


def _describe(error: PydanticValidationError) -> str:
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "body"
    return f"Invalid {field}: {first.get('msg', 'invalid value')}"
