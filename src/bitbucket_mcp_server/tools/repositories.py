"""Repository, workspace and connectivity tools."""

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError

from ..config import Settings
from ..services.bitbucket_client import BitbucketClient
from ..services.errors import ConnectionTestFailedError
from .common import RepoSlug, Workspace, call_api, to_json


def register_tools(mcp: FastMCP, client: BitbucketClient, settings: Settings) -> None:
    """Register repository and workspace tools with the MCP server."""

    @mcp.tool()
    async def repo_info(workspace: Workspace, repoSlug: RepoSlug) -> str:
        """Get repository info. Requires workspace and repoSlug parameters."""
        return await call_api(client.get_repository(workspace, repoSlug))

    @mcp.tool()
    async def workspaces_list() -> str:
        """List all accessible workspaces (Cloud) or projects (Server)."""
        return await call_api(client.list_workspaces())

    @mcp.tool()
    async def repos_list(workspace: Workspace) -> str:
        """List repositories in a workspace. Requires the workspace parameter."""
        return await call_api(client.list_repositories(workspace))

    @mcp.tool()
    async def connection_test() -> str:
        """Test connection to the Bitbucket API."""
        status = await client.test_connection()
        if not status.success:
            raise ToolError(to_json(ConnectionTestFailedError(status.error).to_dict()))
        return "Connection successful"
