"""Entry point for Bitbucket MCP Server."""

import asyncio
import logging
import sys

from .config import ConfigurationError, load_config
from .logging_config import configure_logging
from .server import serve

logger = logging.getLogger(__name__)


def main():
    """Run the MCP server."""
    configure_logging()
    try:
        settings = load_config()
    except ConfigurationError as e:
        logger.error("%s", e)
        sys.exit(1)

    logging.getLogger().setLevel(settings.log_level)
    asyncio.run(serve(settings))


if __name__ == "__main__":
    main()
