"""
HTTP surface for the marketplace functions.

This package provides a single FastAPI application that exposes:
- The notification functions under /functions/v1/
- The payment functions under /functions/v1/
- Browser-safe checkout configuration
"""

from api.main import app

__all__ = ["app"]
