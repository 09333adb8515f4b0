"""Pull request tools for Bitbucket MCP Server."""

import logging
from typing import Annotated

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from pydantic import Field

from ..config import Settings
from ..models.schemas import LineType, MergeStrategy, PullRequestState
from ..services.bitbucket_client import BitbucketClient
from ..services.git import GitError, GitService
from .common import NonEmptyStr, PrId, RepoSlug, Version, Workspace, call_api

logger = logging.getLogger(__name__)


def register_tools(mcp: FastMCP, client: BitbucketClient, settings: Settings) -> None:
    """Register pull request tools with the MCP server."""

    git_service = GitService(settings.working_dir)

    @mcp.tool()
    async def pr_list(
        workspace: Workspace,
        repoSlug: RepoSlug,
        state: Annotated[PullRequestState, Field(description="Pull request state filter")] = "OPEN",
    ) -> str:
        """
        List pull requests for the repository. Requires workspace and repoSlug parameters.
        Optional state=OPEN|MERGED|DECLINED|SUPERSEDED (default OPEN).
        """
        return await call_api(client.list_pull_requests(workspace, repoSlug, state))

    @mcp.tool()
    async def pr_create(
        workspace: Workspace,
        repoSlug: RepoSlug,
        title: NonEmptyStr,
        sourceBranch: Annotated[str | None, Field(description="Defaults to the current local branch")] = None,
        destBranch: Annotated[str | None, Field(description="Defaults to the configured default branch")] = None,
        description: str = "",
    ) -> str:
        """
        Create a pull request. Requires workspace, repoSlug and title parameters.
        sourceBranch defaults to the current local branch; destBranch defaults to
        the configured default destination branch (usually "main").
        """
        source_branch = sourceBranch
        if not source_branch:
            try:
                source_branch = git_service.get_current_branch()
            except GitError as e:
                raise ToolError("sourceBranch is required or must be in a git repository") from e
            logger.info("Using current git branch '%s' as source branch", source_branch)

        return await call_api(client.create_pull_request(
            workspace,
            repoSlug,
            title=title,
            source_branch=source_branch,
            destination_branch=destBranch or settings.default_destination_branch,
            description=description,
        ))

    @mcp.tool()
    async def pr_get(workspace: Workspace, repoSlug: RepoSlug, prId: PrId) -> str:
        """Get details of a specific pull request. Requires workspace, repoSlug, and prId parameters."""
        return await call_api(client.get_pull_request(workspace, repoSlug, prId))

    @mcp.tool()
    async def pr_diff(workspace: Workspace, repoSlug: RepoSlug, prId: PrId) -> str:
        """Get diff of a pull request. Requires workspace, repoSlug, and prId parameters."""
        return await call_api(client.get_pull_request_diff(workspace, repoSlug, prId))

    @mcp.tool()
    async def pr_changes(workspace: Workspace, repoSlug: RepoSlug, prId: PrId) -> str:
        """Get file changes in a pull request. Requires workspace, repoSlug, and prId parameters."""
        return await call_api(client.get_pull_request_changes(workspace, repoSlug, prId))

    @mcp.tool()
    async def pr_comments_list(workspace: Workspace, repoSlug: RepoSlug, prId: PrId) -> str:
        """List all comments on a pull request. Requires workspace, repoSlug, and prId parameters."""
        return await call_api(client.list_pull_request_comments(workspace, repoSlug, prId))

    @mcp.tool()
    async def pr_comment_add(workspace: Workspace, repoSlug: RepoSlug, prId: PrId, text: NonEmptyStr) -> str:
        """Add a comment to a pull request. Requires workspace, repoSlug, prId, and text parameters."""
        return await call_api(client.add_pull_request_comment(workspace, repoSlug, prId, text))

    @mcp.tool()
    async def pr_inline_comment_add(
        workspace: Workspace,
        repoSlug: RepoSlug,
        prId: PrId,
        filePath: NonEmptyStr,
        line: Annotated[int, Field(ge=1)],
        text: NonEmptyStr,
        lineType: LineType = "ADDED",
    ) -> str:
        """
        Add an inline comment to a pull request at a specific file and line.
        Requires workspace, repoSlug, prId, filePath, line, and text parameters.
        Optional lineType (ADDED|CONTEXT|REMOVED, default ADDED).
        """
        return await call_api(client.add_inline_comment(
            workspace,
            repoSlug,
            prId,
            file_path=filePath,
            line=line,
            text=text,
            line_type=lineType,
        ))

    @mcp.tool()
    async def pr_approve(workspace: Workspace, repoSlug: RepoSlug, prId: PrId) -> str:
        """Approve a pull request. Requires workspace, repoSlug, and prId parameters."""
        return await call_api(client.approve_pull_request(workspace, repoSlug, prId))

    @mcp.tool()
    async def pr_decline(workspace: Workspace, repoSlug: RepoSlug, prId: PrId, version: Version = None) -> str:
        """Decline/reject a pull request. Requires workspace, repoSlug, and prId parameters."""
        return await call_api(client.decline_pull_request(workspace, repoSlug, prId, version=version))

    @mcp.tool()
    async def pr_merge(
        workspace: Workspace,
        repoSlug: RepoSlug,
        prId: PrId,
        closeSourceBranch: bool | None = None,
        mergeStrategy: MergeStrategy | None = None,
        message: str | None = None,
        version: Version = None,
    ) -> str:
        """
        Merge a pull request. Requires workspace, repoSlug, and prId parameters.
        Optional: closeSourceBranch (boolean), mergeStrategy (merge_commit|squash|fast_forward),
        message (string).
        """
        return await call_api(client.merge_pull_request(
            workspace,
            repoSlug,
            prId,
            close_source_branch=closeSourceBranch,
            merge_strategy=mergeStrategy,
            message=message,
            version=version,
        ))

    @mcp.tool()
    async def pr_update(
        workspace: Workspace,
        repoSlug: RepoSlug,
        prId: PrId,
        title: str | None = None,
        description: str | None = None,
        version: Version = None,
    ) -> str:
        """
        Update pull request title and/or description. Requires workspace, repoSlug, and prId parameters.
        Optional: title, description.
        """
        if not title and not description:
            raise ToolError("Provide title and/or description to update")
        return await call_api(client.update_pull_request(
            workspace,
            repoSlug,
            prId,
            title=title,
            description=description,
            version=version,
        ))

    @mcp.tool()
    async def pr_reviewers_add(
        workspace: Workspace,
        repoSlug: RepoSlug,
        prId: PrId,
        reviewers: Annotated[
            list[NonEmptyStr],
            Field(min_length=1, description="User UUIDs (Cloud) or usernames (Server)"),
        ],
    ) -> str:
        """
        Add reviewers to a pull request. Requires workspace, repoSlug, prId, and reviewers
        (array of user UUIDs for Cloud or usernames for Server). Existing reviewers are kept.
        """
        async def add_reviewers() -> dict:
            results = await client.add_pull_request_reviewers(workspace, repoSlug, prId, reviewers)
            return {"reviewers": [result.model_dump(exclude_none=True) for result in results]}

        return await call_api(add_reviewers())
