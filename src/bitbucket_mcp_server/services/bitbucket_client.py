"""Async Bitbucket REST client for Cloud and Server deployments."""

import logging
from typing import Any

import httpx

from ..config import Settings
from ..models.schemas import ApiRequest, ConnectionStatus, LineType, MergeStrategy, PullRequestState, ReviewerResult
from .dialects import CloudDialect, Dialect, ServerDialect
from .errors import (
    BitbucketError,
    FileFetchError,
    NotFoundError,
    RemoteFileNotFoundError,
    UnknownError,
    classify_http_error,
)

logger = logging.getLogger(__name__)


class BitbucketClient:
    """
    Async client exposing one method per supported repository operation.

    The API flavour (Cloud or Server) is chosen once from the configured base
    URL; every call is delegated to the matching dialect. Failures are raised as
    BitbucketError subclasses, never as raw httpx exceptions.
    """

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self.is_cloud = settings.is_cloud
        self.headers = {
            "Authorization": settings.auth_header(),
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        self.timeout = httpx.Timeout(connect=5.0, read=60.0, write=10.0, pool=5.0)
        self._http = httpx.AsyncClient(
            base_url=settings.base_url,
            headers=self.headers,
            timeout=self.timeout,
            transport=transport,
            follow_redirects=True,
        )
        dialect_cls = CloudDialect if self.is_cloud else ServerDialect
        self.dialect: Dialect = dialect_cls(self._send)
        logger.debug("Bitbucket client using %s dialect at %s", self.dialect.name, settings.base_url)

    async def __aenter__(self) -> "BitbucketClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _send(self, request: ApiRequest) -> Any:
        """Issue one HTTP request and return the parsed body."""
        headers = {"Accept": "text/plain, */*"} if request.raw else None
        logger.debug("%s %s", request.method, request.path)
        try:
            response = await self._http.request(
                request.method,
                request.path,
                params=request.params,
                json=request.body,
                headers=headers,
            )
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            error = classify_http_error(e, request.method, request.path)
            logger.warning("%s %s failed: %s (%s)", request.method, request.path, error.kind.value, error.status_code)
            raise error from e

        if request.raw:
            return response.text
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return response.text

    # Repositories and workspaces

    async def get_repository(self, workspace: str, repo_slug: str) -> Any:
        return await self.dialect.get_repository(workspace, repo_slug)

    async def list_workspaces(self) -> Any:
        """List workspaces (Cloud) or projects (Server) visible to the credentials."""
        return await self.dialect.list_workspaces()

    async def list_repositories(self, workspace: str) -> Any:
        return await self.dialect.list_repositories(workspace)

    # Pull requests

    async def list_pull_requests(self, workspace: str, repo_slug: str, state: PullRequestState = "OPEN") -> Any:
        return await self.dialect.list_pull_requests(workspace, repo_slug, state)

    async def create_pull_request(
        self,
        workspace: str,
        repo_slug: str,
        title: str,
        source_branch: str,
        destination_branch: str,
        description: str = "",
    ) -> Any:
        return await self.dialect.create_pull_request(
            workspace, repo_slug, title, source_branch, destination_branch, description
        )

    async def get_pull_request(self, workspace: str, repo_slug: str, pr_id: int) -> Any:
        return await self.dialect.get_pull_request(workspace, repo_slug, pr_id)

    async def get_pull_request_diff(self, workspace: str, repo_slug: str, pr_id: int) -> Any:
        """Unified diff text on Cloud, structured diff JSON on Server."""
        return await self.dialect.get_pull_request_diff(workspace, repo_slug, pr_id)

    async def get_pull_request_changes(self, workspace: str, repo_slug: str, pr_id: int) -> Any:
        return await self.dialect.get_pull_request_changes(workspace, repo_slug, pr_id)

    async def list_pull_request_comments(self, workspace: str, repo_slug: str, pr_id: int) -> Any:
        return await self.dialect.list_pull_request_comments(workspace, repo_slug, pr_id)

    async def add_pull_request_comment(self, workspace: str, repo_slug: str, pr_id: int, text: str) -> Any:
        return await self.dialect.add_pull_request_comment(workspace, repo_slug, pr_id, text)

    async def add_inline_comment(
        self,
        workspace: str,
        repo_slug: str,
        pr_id: int,
        file_path: str,
        line: int,
        text: str,
        line_type: LineType = "ADDED",
    ) -> Any:
        return await self.dialect.add_inline_comment(workspace, repo_slug, pr_id, file_path, line, text, line_type)

    async def approve_pull_request(self, workspace: str, repo_slug: str, pr_id: int) -> Any:
        return await self.dialect.approve_pull_request(workspace, repo_slug, pr_id)

    async def decline_pull_request(
        self, workspace: str, repo_slug: str, pr_id: int, version: int | None = None
    ) -> Any:
        return await self.dialect.decline_pull_request(workspace, repo_slug, pr_id, version=version)

    async def merge_pull_request(
        self,
        workspace: str,
        repo_slug: str,
        pr_id: int,
        close_source_branch: bool | None = None,
        merge_strategy: MergeStrategy | None = None,
        message: str | None = None,
        version: int | None = None,
    ) -> Any:
        """
        Merge a pull request.

        On Server the pull request version is read first unless given explicitly,
        since Server rejects merges carrying a stale version.
        """
        return await self.dialect.merge_pull_request(
            workspace,
            repo_slug,
            pr_id,
            close_source_branch=close_source_branch,
            merge_strategy=merge_strategy,
            message=message,
            version=version,
        )

    async def update_pull_request(
        self,
        workspace: str,
        repo_slug: str,
        pr_id: int,
        title: str | None = None,
        description: str | None = None,
        version: int | None = None,
    ) -> Any:
        return await self.dialect.update_pull_request(
            workspace, repo_slug, pr_id, title=title, description=description, version=version
        )

    async def add_pull_request_reviewers(
        self, workspace: str, repo_slug: str, pr_id: int, reviewers: list[str]
    ) -> list[ReviewerResult]:
        """
        Add reviewers to a pull request.

        Cloud expects account UUIDs and sends one update that keeps the current
        reviewers; Server expects usernames and adds each one concurrently.
        Returns one result per reviewer; raises only when every reviewer failed.
        """
        return await self.dialect.add_pull_request_reviewers(workspace, repo_slug, pr_id, reviewers)

    # Branches, commits and files

    async def list_branches(self, workspace: str, repo_slug: str) -> Any:
        return await self.dialect.list_branches(workspace, repo_slug)

    async def create_branch(self, workspace: str, repo_slug: str, name: str, target_hash: str) -> Any:
        return await self.dialect.create_branch(workspace, repo_slug, name, target_hash)

    async def compare_branches(self, workspace: str, repo_slug: str, source: str, destination: str) -> Any:
        return await self.dialect.compare_branches(workspace, repo_slug, source, destination)

    async def list_commits(self, workspace: str, repo_slug: str, spec: str | None = None) -> Any:
        return await self.dialect.list_commits(workspace, repo_slug, spec)

    async def get_commit(self, workspace: str, repo_slug: str, commit_hash: str) -> Any:
        return await self.dialect.get_commit(workspace, repo_slug, commit_hash)

    async def get_commit_diff(self, workspace: str, repo_slug: str, commit_hash: str) -> Any:
        return await self.dialect.get_commit_diff(workspace, repo_slug, commit_hash)

    async def get_file_content(self, workspace: str, repo_slug: str, file_path: str, commit_hash: str) -> str:
        """Get the text of a file at a given commit."""
        try:
            return await self.dialect.get_file_content(workspace, repo_slug, file_path, commit_hash)
        except NotFoundError as e:
            raise RemoteFileNotFoundError(
                f"File '{file_path}' not found at {commit_hash}", status_code=e.status_code, details=e.details
            ) from e
        except UnknownError as e:
            raise FileFetchError(
                f"Failed to fetch '{file_path}' at {commit_hash}: {e.message}",
                status_code=e.status_code,
                details=e.details,
            ) from e

    async def test_connection(self) -> ConnectionStatus:
        """Check connectivity and credentials by listing workspaces. Never raises."""
        try:
            await self.list_workspaces()
        except BitbucketError as e:
            return ConnectionStatus(success=False, error=e)
        return ConnectionStatus(success=True)
