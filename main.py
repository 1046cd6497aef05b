"""Main entry point for Venice Companion (web edition)."""
import asyncio
import sys

from loguru import logger

from companion.access.gatekeeper import HeaderGatekeeper
from companion.api.errors import AuthError
from companion.api.venice_client import VeniceGateway
from companion.config import load_config
from companion.utils.logging_config import setup_logging


async def main():
    """Main application entry point."""
    config = load_config()
    setup_logging(level=config.log_level)
    logger.info("Starting Venice Companion (web mode)")

    if not config.venice_api_key:
        raise AuthError(
            "Missing VENICE_API_KEY. Add it to your environment before using Venice endpoints."
        )

    gateway = VeniceGateway.from_settings(config)
    gatekeeper = HeaderGatekeeper(config.allowed_users())

    from web.server import create_app
    app = create_app(config, gateway, gatekeeper)

    import uvicorn
    logger.info(f"Venice Companion API -> http://{config.host}:{config.port}")

    config_uv = uvicorn.Config(
        app,
        host=config.host,
        port=config.port,
        log_level="warning",
        loop="asyncio",
    )
    server = uvicorn.Server(config_uv)
    await server.serve()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)
    except Exception:
        logger.exception("Application failed to start")
        sys.exit(1)
