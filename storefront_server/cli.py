"""Command line entry point: MCP tools over stdio, or the auth gateway over HTTP."""

import argparse
import asyncio


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="storefront-server", description="Medusa storefront server")
    parser.add_argument("--mode", choices=["stdio", "http"], default="stdio")
    parser.add_argument("--host", default="0.0.0.0", help="Gateway bind address")
    parser.add_argument("--port", type=int, default=8000, help="Gateway port")
    parser.add_argument("--reload", action="store_true", help="Restart the gateway on code changes")
    return parser


def main(argv=None) -> None:
    args = build_parser().parse_args(argv)

    if args.mode == "http":
        from .http_server import run_http_server

        run_http_server(host=args.host, port=args.port, reload=args.reload)
    else:
        from .server import main as server_main

        asyncio.run(server_main())
