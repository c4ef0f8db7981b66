"""Command-line interface for the Angostura MCP Server."""

import argparse
import asyncio
import logging
import sys

from .config import Settings

logger = logging.getLogger("angostura-mcp-server")


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Angostura MCP Server - Storefront and back-office for Compras Angostura"
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
    logging.basicConfig(level=Settings.from_env().log_level)

    if args.mode == "http":
        from .http_server import run_http_server

        logger.info(f"Starting Angostura HTTP Server on {args.host}:{args.port}")
        run_http_server(host=args.host, port=args.port, reload=args.reload)
        return

    from .server import main as server_main

    try:
        asyncio.run(server_main())
    except KeyboardInterrupt:
        logger.info("Shutting down...")
        sys.exit(0)


if __name__ == "__main__":
    main()
