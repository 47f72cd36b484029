"""Service entrypoint: `python -m contentintel.main`."""

import asyncio
import sys

from .config.settings import get_settings
from .http_server import run_http_server
from .lifespan import lifespan_manager


async def main() -> None:
    settings = get_settings()
    async with lifespan_manager():
        await run_http_server(settings)


def run() -> int:
    try:
        get_settings()
    except ValueError as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 2
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nShutting down...")
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(run())
