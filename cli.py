#!/usr/bin/env python3
"""
Command-line interface for the marketplace functions.

Usage:
    uv run python cli.py [command] [options]

Commands:
    serve       Start the functions server
    invoke      Call a function by name and print the response
    test        Run the test suite

Examples:
    uv run python cli.py serve --reload
    uv run python cli.py invoke notify-user --body '{"userId": "user-ava", "title": "Hi", "message": "Ready"}'
    RECORD_STORE_BACKEND=memory uv run python cli.py invoke notify-driver --local \\
        --body '{"orderId": "ord-1001", "title": "Pickup", "message": "Order ready"}'
"""

import argparse
import json
import subprocess
import sys

FUNCTION_NAMES = [
    "notify-user",
    "notify-merchant",
    "notify-driver",
    "stripe-payment",
    "verify-payment",
]


def run_invoke(function_name: str, body: str, local: bool, anon: bool) -> None:
    """Invoke a function and print its JSON response."""
    from shared.config import get_settings
    from shared.errors import MarketplaceError
    from shared.record_store import FunctionInvocationError, RestRecordStore

    try:
        payload = json.loads(body) if body else {}
    except ValueError as e:
        print(f"Invalid --body JSON: {e}")
        sys.exit(1)

    settings = get_settings()
    try:
        if local:
            from api.main import FUNCTIONS
            result = FUNCTIONS[function_name](payload)
        else:
            key_field = "supabase_anon_key" if anon else "supabase_service_role_key"
            message = "Supabase environment not configured"
            url = settings.require("supabase_url", message)
            key = settings.require(key_field, message)
            with RestRecordStore(url, key) as store:
                result = store.invoke(function_name, payload)
    except FunctionInvocationError as e:
        print(f"{function_name} failed ({e.status}): {e.message}")
        sys.exit(1)
    except MarketplaceError as e:
        print(f"{function_name} failed: {e.message}")
        sys.exit(1)

    print(json.dumps(result, indent=2))


def run_tests(args: list[str]) -> None:
    """Run the test suite."""
    cmd = ["uv", "run", "pytest"] + args
    subprocess.run(cmd)


def run_server(host: str, port: int, reload: bool) -> None:
    """Start the functions server."""
    cmd = ["uv", "run", "uvicorn", "api.main:app", f"--host={host}", f"--port={port}"]
    if reload:
        cmd.append("--reload")

    print(f"Starting server at http://{host}:{port}")
    print(f"Functions available at http://{host}:{port}/functions/v1/<name>")
    print(f"API docs available at http://{host}:{port}/docs")
    subprocess.run(cmd)


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Marketplace Functions CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s serve --reload
  %(prog)s invoke notify-merchant --body '{"orderId": "ord-1001", "title": "New order", "message": "2 items"}'
  %(prog)s invoke stripe-payment --anon --body '{"amount": 19.99}'
  %(prog)s test -v
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Start the functions server")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Host to bind to")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to bind to")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    # Invoke command
    invoke_parser = subparsers.add_parser("invoke", help="Call a function by name")
    invoke_parser.add_argument("function", choices=FUNCTION_NAMES, help="Function to call")
    invoke_parser.add_argument("--body", default="{}", help="JSON request body")
    invoke_parser.add_argument(
        "--local",
        action="store_true",
        help="Run the function in-process against the configured record store",
    )
    invoke_parser.add_argument(
        "--anon",
        action="store_true",
        help="Authenticate with the anon key instead of the service key",
    )

    # Test command
    test_parser = subparsers.add_parser("test", help="Run the test suite")
    test_parser.add_argument(
        "pytest_args",
        nargs="*",
        default=[],
        help="Arguments to pass to pytest",
    )

    args = parser.parse_args()

    if args.command == "serve":
        run_server(args.host, args.port, args.reload)
    elif args.command == "invoke":
        run_invoke(args.function, args.body, args.local, args.anon)
    elif args.command == "test":
        run_tests(args.pytest_args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
