"""CLI entry point for the Tuya proxy.

Usage::

    python -m tuya_proxy serve [--host 0.0.0.0] [--port 3000]
    python -m tuya_proxy call  ACTION [--id ID] [--path PATH] [--method GET]
                               [--data JSON] [--command on|off] [--code switch_1]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from tuya_proxy.actions import ActionRouter
from tuya_proxy.cache import TokenCache
from tuya_proxy.client import TuyaClient
from tuya_proxy.config import RedisConfig, ServerConfig, TuyaConfig


def main() -> None:
    """Parse arguments and dispatch to the appropriate subcommand."""
    parser = argparse.ArgumentParser(
        prog="tuya_proxy",
        description="Tuya Cloud API proxy",
    )
    sub = parser.add_subparsers(dest="command")

    # -- serve ---------------------------------------------------------------
    serve_p = sub.add_parser("serve", help="Start the HTTP proxy server")
    serve_p.add_argument(
        "--host", type=str, default=None,
        help="Bind address (default: HOST or 0.0.0.0)",
    )
    serve_p.add_argument(
        "--port", type=int, default=None,
        help="Port (default: PORT or 3000)",
    )

    # -- call ----------------------------------------------------------------
    call_p = sub.add_parser("call", help="Run a single proxy action and print the result")
    call_p.add_argument(
        "action",
        help="Action name: test, request, status, devices, state, control",
    )
    call_p.add_argument("--id", type=str, default=None, help="Device ID")
    call_p.add_argument("--path", type=str, default=None, help="API path for 'request'")
    call_p.add_argument("--method", type=str, default=None, help="HTTP method for 'request'")
    call_p.add_argument("--data", type=str, default=None, help="JSON body for 'request'")
    call_p.add_argument(
        "--command", dest="switch", type=str, default=None,
        help="'on' or 'off' for 'control'",
    )
    call_p.add_argument(
        "--code", type=str, default=None,
        help="Data-point code for 'control' (default: switch_1)",
    )

    args = parser.parse_args()
    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )

    if args.command == "serve":
        _run_serve(args)
    elif args.command == "call":
        asyncio.run(_run_call(args))


def _run_serve(args: argparse.Namespace) -> None:
    import uvicorn

    from tuya_proxy.server import create_app

    config = ServerConfig()
    app = create_app(config)
    uvicorn.run(app, host=args.host or config.host, port=args.port or config.port)


async def _run_call(args: argparse.Namespace) -> None:
    params = {
        "action": args.action,
        "id": args.id,
        "path": args.path,
        "method": args.method,
        "data": args.data,
        "command": args.switch,
        "code": args.code,
    }
    async with TuyaClient(TuyaConfig(), TokenCache(RedisConfig())) as client:
        result = await ActionRouter(client).dispatch(
            {k: v for k, v in params.items() if v is not None}
        )
    print(json.dumps(result, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
