"""FastMCP server setup for Bitbucket MCP Server."""

import logging

from fastmcp import FastMCP

from .config import Settings
from .services.bitbucket_client import BitbucketClient
from .tools import pull_requests, repositories, source

logger = logging.getLogger(__name__)

SERVER_NAME = "bitbucket-mcp-server"

INSTRUCTIONS = """
Bitbucket MCP Server - repository tools for Bitbucket Cloud and Bitbucket Server.

Every repository tool takes a workspace (Cloud workspace slug or Server project key)
and a repoSlug. Pull request tools additionally take a numeric prId.

Failures are returned as tool errors carrying errorKind, statusCode, suggestion and
isRetryable. Nothing is retried automatically; retry RATE_LIMIT_ERROR, SERVER_ERROR,
NETWORK_ERROR and TIMEOUT_ERROR yourself if needed.
"""


def create_server(settings: Settings, client: BitbucketClient) -> FastMCP:
    """
    Create and configure the MCP server.

    Args:
        settings: Resolved settings
        client: Bitbucket client shared by all tool handlers

    Returns:
        Configured FastMCP server instance
    """
    mcp = FastMCP(name=SERVER_NAME, instructions=INSTRUCTIONS, on_duplicate_tools="error")

    # Register tools
    repositories.register_tools(mcp, client, settings)
    pull_requests.register_tools(mcp, client, settings)
    source.register_tools(mcp, client, settings)

    logger.info("Bitbucket MCP server configured (%s dialect)", client.dialect.name)
    return mcp


async def serve(settings: Settings) -> None:
    """Run the server over stdio until the transport closes."""
    async with BitbucketClient(settings) as client:
        mcp = create_server(settings, client)
        logger.info("Bitbucket MCP server running on stdio (%s)", settings.base_url)
        await mcp.run_async(transport="stdio")
