"""Main entry point for the Order Relay service."""

import uvicorn

from order_relay.config import get_settings
from order_relay.server import app


def main() -> None:
    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
