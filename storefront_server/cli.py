"""CLI entry point for the Storefront commerce server."""

import argparse
import asyncio

from .config import AdapterKind, Settings


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Storefront commerce server")
    parser.add_argument(
        "--mode",
        choices=["stdio", "http"],
        default="stdio",
        help="Server mode: stdio (for MCP protocol) or http (for REST API)",
    )
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host to bind to (HTTP mode only, default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to (HTTP mode only, default: 8000)",
    )
    parser.add_argument(
        "--adapter",
        choices=[kind.value for kind in AdapterKind],
        default=None,
        help="Backend adapter (default: STOREFRONT_ADAPTER or network)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable hot reloading (HTTP mode only, watches for file changes)",
    )

    args = parser.parse_args()
    settings = Settings.from_env(adapter=args.adapter)

    if args.mode == "http":
        from .http_server import run_http_server
        run_http_server(host=args.host, port=args.port, reload=args.reload, settings=settings)
    else:
        from .server import main as server_main
        asyncio.run(server_main(settings))


if __name__ == "__main__":
    main()
