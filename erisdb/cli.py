"""
Command-line entry point: invoke one Eris DB remote method and print the result.

Usage:
    python -m erisdb --url http://localhost:1337/rpc getChainId
    python -m erisdb --url ws://localhost:1337/socketrpc getAccount '{"address": "..."}'
    python -m erisdb --list
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, List, Optional

from dotenv import load_dotenv

from erisdb import config, logging_config
from erisdb.client import METHOD_NAMES, Client
from erisdb.rpc_engine import JsonRpcError
from erisdb.transport.base import TransportError

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CALL_FAILED = 1
EXIT_USAGE = 2


def load_env_file():
    """Load environment variables from .env file if it exists."""
    load_dotenv(override=False)  # Don't override existing env vars


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="erisdb",
        description="Call a remote method on an Eris DB node over HTTP or WebSocket",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Ask a node for its chain id over HTTP
  python -m erisdb --url http://localhost:1337/rpc getChainId

  # Fetch an account over a WebSocket connection
  python -m erisdb --url ws://localhost:1337/socketrpc getAccount '{"address": "37236DF2..."}'

Environment:
  ERISDB_URL, ERISDB_NAMESPACE, ERISDB_HTTP_TIMEOUT, ERISDB_LOG_LEVEL
  (a .env file in the working directory is loaded first)
        """,
    )
    parser.add_argument("method", nargs="?", help="Remote method name, e.g. getAccount")
    parser.add_argument("params", nargs="?", help="Named parameters as a JSON object")
    parser.add_argument("--url", help="Node address (http://, https://, ws:// or wss://)")
    parser.add_argument("--namespace", help="Method namespace (default: erisdb)")
    parser.add_argument("--timeout", type=float, help="HTTP request timeout in seconds")
    parser.add_argument("--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR)")
    parser.add_argument("--list", action="store_true", help="List the available remote methods and exit")
    return parser


def parse_params(raw: Optional[str]) -> List[Any]:
    """
    Turn the optional JSON argument into positional call arguments.

    Raises:
        ValueError: If the argument is not valid JSON
    """
    if raw is None:
        return []
    try:
        return [json.loads(raw)]
    except json.JSONDecodeError as e:
        raise ValueError(f"PARAMS is not valid JSON: {e}") from e


async def invoke(client: Client, method: str, args: List[Any]) -> Any:
    client.log_errors()
    try:
        return await client.rpc[method](*args)
    finally:
        await client.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    load_env_file()
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.log_level:
        config.set_log_level(args.log_level)
    logging_config.setup_logging(config.get_log_level())

    if args.list:
        for name in METHOD_NAMES:
            print(name)
        return EXIT_OK

    if not args.method:
        parser.print_usage(sys.stderr)
        print("error: a method name is required", file=sys.stderr)
        return EXIT_USAGE

    if args.method not in METHOD_NAMES:
        print(f"error: unknown method {args.method!r}; use --list to see available methods", file=sys.stderr)
        return EXIT_USAGE

    try:
        if args.url:
            config.set_config(args.url, args.namespace)
        elif args.namespace:
            config.set_config(config.get_server_url(), args.namespace)
        if args.timeout is not None:
            config.set_http_timeout(args.timeout)
        call_args = parse_params(args.params)
        client = Client()
    except (RuntimeError, ValueError) as e:
        # TransportSelectionError is a ValueError
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USAGE

    try:
        result = asyncio.run(invoke(client, args.method, call_args))
    except JsonRpcError as e:
        logger.error(f"{args.method} failed: {e}")
        print(json.dumps({"code": e.code, "message": e.message, "data": e.data}, indent=2), file=sys.stderr)
        return EXIT_CALL_FAILED
    except TransportError as e:
        logger.error(f"{args.method} failed: {e}")
        return EXIT_CALL_FAILED

    print(json.dumps(result, indent=2))
    return EXIT_OK
