"""Branch, commit and file content tools."""

from typing import Annotated

from fastmcp import FastMCP
from pydantic import Field

from ..config import Settings
from ..services.bitbucket_client import BitbucketClient
from .common import NonEmptyStr, RepoSlug, Workspace, call_api

CommitHash = Annotated[str, Field(min_length=1, description="Commit hash")]


def register_tools(mcp: FastMCP, client: BitbucketClient, settings: Settings) -> None:
    """Register branch, commit and file tools with the MCP server."""

    @mcp.tool()
    async def branches_list(workspace: Workspace, repoSlug: RepoSlug) -> str:
        """List branches in the repository. Requires workspace and repoSlug parameters."""
        return await call_api(client.list_branches(workspace, repoSlug))

    @mcp.tool()
    async def branch_create(workspace: Workspace, repoSlug: RepoSlug, name: NonEmptyStr, targetHash: CommitHash) -> str:
        """
        Create a branch from a target commit hash.
        Requires workspace, repoSlug, name, and targetHash parameters.
        """
        return await call_api(client.create_branch(workspace, repoSlug, name, targetHash))

    @mcp.tool()
    async def branch_compare(
        workspace: Workspace,
        repoSlug: RepoSlug,
        source: Annotated[str, Field(min_length=1, description="Source branch name")],
        destination: Annotated[str, Field(min_length=1, description="Destination branch name")],
    ) -> str:
        """
        Compare two branches to see differences.
        Requires workspace, repoSlug, source (branch name), and destination (branch name) parameters.
        """
        return await call_api(client.compare_branches(workspace, repoSlug, source, destination))

    @mcp.tool()
    async def commits_list(
        workspace: Workspace,
        repoSlug: RepoSlug,
        spec: Annotated[str | None, Field(description="Branch name or commit to list history from")] = None,
    ) -> str:
        """
        List commits in the repository. Requires workspace and repoSlug parameters.
        Optional spec (branch or commit).
        """
        return await call_api(client.list_commits(workspace, repoSlug, spec))

    @mcp.tool()
    async def commit_get(workspace: Workspace, repoSlug: RepoSlug, commitHash: CommitHash) -> str:
        """Get details of a specific commit. Requires workspace, repoSlug, and commitHash parameters."""
        return await call_api(client.get_commit(workspace, repoSlug, commitHash))

    @mcp.tool()
    async def commit_diff(workspace: Workspace, repoSlug: RepoSlug, commitHash: CommitHash) -> str:
        """Get diff for a specific commit. Requires workspace, repoSlug, and commitHash parameters."""
        return await call_api(client.get_commit_diff(workspace, repoSlug, commitHash))

    @mcp.tool()
    async def file_content(
        workspace: Workspace,
        repoSlug: RepoSlug,
        filePath: NonEmptyStr,
        commitHash: Annotated[str, Field(min_length=1, description="Commit hash or branch name")],
    ) -> str:
        """
        Get content of a file at a specific commit.
        Requires workspace, repoSlug, filePath, and commitHash parameters.
        """
        return await call_api(client.get_file_content(workspace, repoSlug, filePath, commitHash))
