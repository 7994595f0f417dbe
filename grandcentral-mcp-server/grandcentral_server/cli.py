"""Command-line interface for Grand Central MCP Server."""

import argparse
import asyncio


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Grand Central MCP Server - Order meals from Grand Central Bakery and Kitchen"
    )
    parser.add_argument(
        "--mode",
        choices=["stdio", "http"],
        default="stdio",
        help="Server mode: stdio (for MCP clients) or http (REST API)",
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="HTTP server host (only for http mode, default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="HTTP server port (only for http mode, default: 8000)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable hot reloading (HTTP mode only, watches for file changes)",
    )

    args = parser.parse_args()

    if args.mode == "http":
        from .http_server import run_http_server

        print(f"Starting Grand Central HTTP Server on {args.host}:{args.port}")
        print(f"API documentation available at http://{args.host}:{args.port}/docs")
        run_http_server(host=args.host, port=args.port, reload=args.reload)
    else:
        from .server import main as server_main

        asyncio.run(server_main())


if __name__ == "__main__":
    main()
