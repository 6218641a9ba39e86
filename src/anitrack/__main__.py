"""Run the anitrack web server.

Configuration comes from the environment (see AppConfig.from_env()); a .env
file in the working directory is loaded first.
"""

import asyncio
import logging

import uvicorn
from dotenv import load_dotenv

from anitrack.config import AppConfig
from anitrack.server.app import create_server_app
from anitrack.server.context import create_context

logger = logging.getLogger(__name__)


async def serve(config: AppConfig) -> None:
    ctx = create_context(config)
    app = create_server_app(ctx)

    # Forwarded headers are handled by the pipeline's proxy trust stage
    server_config = uvicorn.Config(
        app=app,
        host=config.host,
        port=config.port,
        proxy_headers=False,
        log_level="info",
    )
    server = uvicorn.Server(server_config)

    logger.info(f"Starting server on {config.host}:{config.port} for {config.web_url}")
    await server.serve()


def main() -> None:
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(serve(AppConfig.from_env()))


if __name__ == "__main__":
    main()
