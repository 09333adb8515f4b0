"""
Bitbucket Cloud (API 2.0) and Bitbucket Server (REST 1.0) request dialects.

Each dialect implements the full operation set against one API flavour. A
dialect never performs HTTP itself: it builds ApiRequest values and hands them
to the send coroutine supplied by the client, which owns the connection and
error classification.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, ClassVar
from urllib.parse import quote

from ..models.schemas import ApiRequest, LineType, MergeStrategy, PullRequestState, ReviewerResult
from .errors import BitbucketError

Sender = Callable[[ApiRequest], Awaitable[Any]]


def encode(segment: str | int) -> str:
    """Percent-encode a single path segment, slashes included."""
    return quote(str(segment), safe="")


def encode_path(file_path: str) -> str:
    """Percent-encode a file path segment by segment, keeping the separators."""
    return "/".join(encode(part) for part in file_path.strip("/").split("/"))


class Dialect(ABC):
    """Operation set shared by both Bitbucket API flavours."""

    name: ClassVar[str]

    def __init__(self, send: Sender):
        self._send = send

    @abstractmethod
    async def get_repository(self, workspace: str, repo_slug: str) -> Any: ...

    @abstractmethod
    async def list_pull_requests(self, workspace: str, repo_slug: str, state: PullRequestState) -> Any: ...

    @abstractmethod
    async def create_pull_request(
        self,
        workspace: str,
        repo_slug: str,
        title: str,
        source_branch: str,
        destination_branch: str,
        description: str,
    ) -> Any: ...

    @abstractmethod
    async def get_pull_request(self, workspace: str, repo_slug: str, pr_id: int) -> Any: ...

    @abstractmethod
    async def get_pull_request_diff(self, workspace: str, repo_slug: str, pr_id: int) -> Any: ...

    @abstractmethod
    async def get_pull_request_changes(self, workspace: str, repo_slug: str, pr_id: int) -> Any: ...

    @abstractmethod
    async def list_pull_request_comments(self, workspace: str, repo_slug: str, pr_id: int) -> Any: ...

    @abstractmethod
    async def add_pull_request_comment(self, workspace: str, repo_slug: str, pr_id: int, text: str) -> Any: ...

    @abstractmethod
    async def add_inline_comment(
        self,
        workspace: str,
        repo_slug: str,
        pr_id: int,
        file_path: str,
        line: int,
        text: str,
        line_type: LineType,
    ) -> Any: ...

    @abstractmethod
    async def approve_pull_request(self, workspace: str, repo_slug: str, pr_id: int) -> Any: ...

    @abstractmethod
    async def decline_pull_request(
        self, workspace: str, repo_slug: str, pr_id: int, version: int | None = None
    ) -> Any: ...

    @abstractmethod
    async def merge_pull_request(
        self,
        workspace: str,
        repo_slug: str,
        pr_id: int,
        close_source_branch: bool | None = None,
        merge_strategy: MergeStrategy | None = None,
        message: str | None = None,
        version: int | None = None,
    ) -> Any: ...

    @abstractmethod
    async def update_pull_request(
        self,
        workspace: str,
        repo_slug: str,
        pr_id: int,
        title: str | None = None,
        description: str | None = None,
        version: int | None = None,
    ) -> Any: ...

    @abstractmethod
    async def add_pull_request_reviewers(
        self, workspace: str, repo_slug: str, pr_id: int, reviewers: list[str]
    ) -> list[ReviewerResult]: ...

    @abstractmethod
    async def list_branches(self, workspace: str, repo_slug: str) -> Any: ...

    @abstractmethod
    async def create_branch(self, workspace: str, repo_slug: str, name: str, target_hash: str) -> Any: ...

    @abstractmethod
    async def compare_branches(self, workspace: str, repo_slug: str, source: str, destination: str) -> Any: ...

    @abstractmethod
    async def list_commits(self, workspace: str, repo_slug: str, spec: str | None = None) -> Any: ...

    @abstractmethod
    async def get_commit(self, workspace: str, repo_slug: str, commit_hash: str) -> Any: ...

    @abstractmethod
    async def get_commit_diff(self, workspace: str, repo_slug: str, commit_hash: str) -> Any: ...

    @abstractmethod
    async def list_workspaces(self) -> Any: ...

    @abstractmethod
    async def list_repositories(self, workspace: str) -> Any: ...

    @abstractmethod
    async def get_file_content(self, workspace: str, repo_slug: str, file_path: str, commit_hash: str) -> str: ...


class CloudDialect(Dialect):
    """Bitbucket Cloud REST API 2.0."""

    name = "cloud"

    @staticmethod
    def _repo(workspace: str, repo_slug: str) -> str:
        return f"/repositories/{encode(workspace)}/{encode(repo_slug)}"

    def _pr(self, workspace: str, repo_slug: str, pr_id: int) -> str:
        return f"{self._repo(workspace, repo_slug)}/pullrequests/{encode(pr_id)}"

    async def get_repository(self, workspace: str, repo_slug: str) -> Any:
        return await self._send(ApiRequest(path=self._repo(workspace, repo_slug)))

    async def list_pull_requests(self, workspace: str, repo_slug: str, state: PullRequestState) -> Any:
        return await self._send(ApiRequest(
            path=f"{self._repo(workspace, repo_slug)}/pullrequests",
            params={"state": state},
        ))

    async def create_pull_request(
        self,
        workspace: str,
        repo_slug: str,
        title: str,
        source_branch: str,
        destination_branch: str,
        description: str,
    ) -> Any:
        body = {
            "title": title,
            "description": description,
            "source": {"branch": {"name": source_branch}},
            "destination": {"branch": {"name": destination_branch}},
        }
        return await self._send(ApiRequest(
            method="POST",
            path=f"{self._repo(workspace, repo_slug)}/pullrequests",
            body=body,
        ))

    async def get_pull_request(self, workspace: str, repo_slug: str, pr_id: int) -> Any:
        return await self._send(ApiRequest(path=self._pr(workspace, repo_slug, pr_id)))

    async def get_pull_request_diff(self, workspace: str, repo_slug: str, pr_id: int) -> Any:
        return await self._send(ApiRequest(path=f"{self._pr(workspace, repo_slug, pr_id)}/diff", raw=True))

    async def get_pull_request_changes(self, workspace: str, repo_slug: str, pr_id: int) -> Any:
        return await self._send(ApiRequest(path=f"{self._pr(workspace, repo_slug, pr_id)}/diffstat"))

    async def list_pull_request_comments(self, workspace: str, repo_slug: str, pr_id: int) -> Any:
        return await self._send(ApiRequest(path=f"{self._pr(workspace, repo_slug, pr_id)}/comments"))

    async def add_pull_request_comment(self, workspace: str, repo_slug: str, pr_id: int, text: str) -> Any:
        return await self._send(ApiRequest(
            method="POST",
            path=f"{self._pr(workspace, repo_slug, pr_id)}/comments",
            body={"content": {"raw": text}},
        ))

    async def add_inline_comment(
        self,
        workspace: str,
        repo_slug: str,
        pr_id: int,
        file_path: str,
        line: int,
        text: str,
        line_type: LineType,
    ) -> Any:
        body = {
            "content": {"raw": text},
            "inline": {"path": file_path, "to": line},
        }
        return await self._send(ApiRequest(
            method="POST",
            path=f"{self._pr(workspace, repo_slug, pr_id)}/comments",
            body=body,
        ))

    async def approve_pull_request(self, workspace: str, repo_slug: str, pr_id: int) -> Any:
        return await self._send(ApiRequest(method="POST", path=f"{self._pr(workspace, repo_slug, pr_id)}/approve"))

    async def decline_pull_request(
        self, workspace: str, repo_slug: str, pr_id: int, version: int | None = None
    ) -> Any:
        return await self._send(ApiRequest(method="POST", path=f"{self._pr(workspace, repo_slug, pr_id)}/decline"))

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
        body: dict[str, Any] = {}
        if close_source_branch is not None:
            body["close_source_branch"] = close_source_branch
        if merge_strategy:
            body["merge_strategy"] = merge_strategy
        if message:
            body["message"] = message
        return await self._send(ApiRequest(
            method="POST",
            path=f"{self._pr(workspace, repo_slug, pr_id)}/merge",
            body=body,
        ))

    async def update_pull_request(
        self,
        workspace: str,
        repo_slug: str,
        pr_id: int,
        title: str | None = None,
        description: str | None = None,
        version: int | None = None,
    ) -> Any:
        body: dict[str, Any] = {}
        if title:
            body["title"] = title
        if description:
            body["description"] = description
        return await self._send(ApiRequest(method="PUT", path=self._pr(workspace, repo_slug, pr_id), body=body))

    async def add_pull_request_reviewers(
        self, workspace: str, repo_slug: str, pr_id: int, reviewers: list[str]
    ) -> list[ReviewerResult]:
        # The update replaces the whole reviewer list, so current reviewers are carried over
        pull_request = await self.get_pull_request(workspace, repo_slug, pr_id)
        current = (pull_request.get("reviewers") or []) if isinstance(pull_request, dict) else []
        existing = [entry["uuid"] for entry in current if isinstance(entry, dict) and entry.get("uuid")]
        merged = list(dict.fromkeys([*existing, *reviewers]))
        await self._send(ApiRequest(
            method="PUT",
            path=self._pr(workspace, repo_slug, pr_id),
            body={"reviewers": [{"uuid": reviewer} for reviewer in merged]},
        ))
        return [ReviewerResult(reviewer=reviewer, success=True) for reviewer in reviewers]

    async def list_branches(self, workspace: str, repo_slug: str) -> Any:
        return await self._send(ApiRequest(path=f"{self._repo(workspace, repo_slug)}/refs/branches"))

    async def create_branch(self, workspace: str, repo_slug: str, name: str, target_hash: str) -> Any:
        return await self._send(ApiRequest(
            method="POST",
            path=f"{self._repo(workspace, repo_slug)}/refs/branches",
            body={"name": name, "target": {"hash": target_hash}},
        ))

    async def compare_branches(self, workspace: str, repo_slug: str, source: str, destination: str) -> Any:
        return await self._send(ApiRequest(
            path=f"{self._repo(workspace, repo_slug)}/diff/{encode(destination)}..{encode(source)}",
            raw=True,
        ))

    async def list_commits(self, workspace: str, repo_slug: str, spec: str | None = None) -> Any:
        path = f"{self._repo(workspace, repo_slug)}/commits"
        if spec:
            path = f"{path}/{encode(spec)}"
        return await self._send(ApiRequest(path=path))

    async def get_commit(self, workspace: str, repo_slug: str, commit_hash: str) -> Any:
        return await self._send(ApiRequest(path=f"{self._repo(workspace, repo_slug)}/commit/{encode(commit_hash)}"))

    async def get_commit_diff(self, workspace: str, repo_slug: str, commit_hash: str) -> Any:
        return await self._send(ApiRequest(
            path=f"{self._repo(workspace, repo_slug)}/diff/{encode(commit_hash)}",
            raw=True,
        ))

    async def list_workspaces(self) -> Any:
        return await self._send(ApiRequest(path="/workspaces"))

    async def list_repositories(self, workspace: str) -> Any:
        return await self._send(ApiRequest(path=f"/repositories/{encode(workspace)}"))

    async def get_file_content(self, workspace: str, repo_slug: str, file_path: str, commit_hash: str) -> str:
        return await self._send(ApiRequest(
            path=f"{self._repo(workspace, repo_slug)}/src/{encode(commit_hash)}/{encode_path(file_path)}",
            raw=True,
        ))


class ServerDialect(Dialect):
    """Bitbucket Server / Data Center REST API 1.0."""

    name = "server"

    @staticmethod
    def _repo(workspace: str, repo_slug: str) -> str:
        return f"/projects/{encode(workspace)}/repos/{encode(repo_slug)}"

    def _pr(self, workspace: str, repo_slug: str, pr_id: int) -> str:
        return f"{self._repo(workspace, repo_slug)}/pull-requests/{encode(pr_id)}"

    async def _current_version(self, workspace: str, repo_slug: str, pr_id: int, version: int | None) -> int:
        """Server writes need the pull request's optimistic-locking version."""
        if version is not None:
            return version
        pull_request = await self.get_pull_request(workspace, repo_slug, pr_id)
        return int(pull_request.get("version", 0)) if isinstance(pull_request, dict) else 0

    async def get_repository(self, workspace: str, repo_slug: str) -> Any:
        return await self._send(ApiRequest(path=self._repo(workspace, repo_slug)))

    async def list_pull_requests(self, workspace: str, repo_slug: str, state: PullRequestState) -> Any:
        return await self._send(ApiRequest(
            path=f"{self._repo(workspace, repo_slug)}/pull-requests",
            params={"state": state},
        ))

    async def create_pull_request(
        self,
        workspace: str,
        repo_slug: str,
        title: str,
        source_branch: str,
        destination_branch: str,
        description: str,
    ) -> Any:
        repository = {"slug": repo_slug, "name": None, "project": {"key": workspace}}
        body = {
            "title": title,
            "description": description,
            "state": "OPEN",
            "open": True,
            "closed": False,
            "fromRef": {"id": f"refs/heads/{source_branch}", "repository": repository},
            "toRef": {"id": f"refs/heads/{destination_branch}", "repository": repository},
            "locked": False,
            "reviewers": [],
        }
        return await self._send(ApiRequest(
            method="POST",
            path=f"{self._repo(workspace, repo_slug)}/pull-requests",
            body=body,
        ))

    async def get_pull_request(self, workspace: str, repo_slug: str, pr_id: int) -> Any:
        return await self._send(ApiRequest(path=self._pr(workspace, repo_slug, pr_id)))

    async def get_pull_request_diff(self, workspace: str, repo_slug: str, pr_id: int) -> Any:
        return await self._send(ApiRequest(path=f"{self._pr(workspace, repo_slug, pr_id)}/diff"))

    async def get_pull_request_changes(self, workspace: str, repo_slug: str, pr_id: int) -> Any:
        return await self._send(ApiRequest(path=f"{self._pr(workspace, repo_slug, pr_id)}/changes"))

    async def list_pull_request_comments(self, workspace: str, repo_slug: str, pr_id: int) -> Any:
        return await self._send(ApiRequest(path=f"{self._pr(workspace, repo_slug, pr_id)}/activities"))

    async def add_pull_request_comment(self, workspace: str, repo_slug: str, pr_id: int, text: str) -> Any:
        return await self._send(ApiRequest(
            method="POST",
            path=f"{self._pr(workspace, repo_slug, pr_id)}/comments",
            body={"text": text},
        ))

    async def add_inline_comment(
        self,
        workspace: str,
        repo_slug: str,
        pr_id: int,
        file_path: str,
        line: int,
        text: str,
        line_type: LineType,
    ) -> Any:
        body = {
            "text": text,
            "anchor": {"line": line, "lineType": line_type, "fileType": "TO", "path": file_path},
        }
        return await self._send(ApiRequest(
            method="POST",
            path=f"{self._pr(workspace, repo_slug, pr_id)}/comments",
            body=body,
        ))

    async def approve_pull_request(self, workspace: str, repo_slug: str, pr_id: int) -> Any:
        return await self._send(ApiRequest(method="POST", path=f"{self._pr(workspace, repo_slug, pr_id)}/approve"))

    async def decline_pull_request(
        self, workspace: str, repo_slug: str, pr_id: int, version: int | None = None
    ) -> Any:
        version = await self._current_version(workspace, repo_slug, pr_id, version)
        return await self._send(ApiRequest(
            method="POST",
            path=f"{self._pr(workspace, repo_slug, pr_id)}/decline",
            params={"version": version},
        ))

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
        version = await self._current_version(workspace, repo_slug, pr_id, version)
        body: dict[str, Any] = {"version": version}
        if message:
            body["message"] = message
        return await self._send(ApiRequest(
            method="POST",
            path=f"{self._pr(workspace, repo_slug, pr_id)}/merge",
            params={"version": version},
            body=body,
        ))

    async def update_pull_request(
        self,
        workspace: str,
        repo_slug: str,
        pr_id: int,
        title: str | None = None,
        description: str | None = None,
        version: int | None = None,
    ) -> Any:
        version = await self._current_version(workspace, repo_slug, pr_id, version)
        body: dict[str, Any] = {"version": version}
        if title:
            body["title"] = title
        if description:
            body["description"] = description
        return await self._send(ApiRequest(method="PUT", path=self._pr(workspace, repo_slug, pr_id), body=body))

    async def add_pull_request_reviewers(
        self, workspace: str, repo_slug: str, pr_id: int, reviewers: list[str]
    ) -> list[ReviewerResult]:
        path = f"{self._pr(workspace, repo_slug, pr_id)}/participants"
        outcomes = await asyncio.gather(
            *(
                self._send(ApiRequest(method="POST", path=path, body={"user": {"name": reviewer}, "role": "REVIEWER"}))
                for reviewer in reviewers
            ),
            return_exceptions=True,
        )

        results = []
        failures = []
        for reviewer, outcome in zip(reviewers, outcomes):
            if isinstance(outcome, BitbucketError):
                failures.append(outcome)
                results.append(ReviewerResult(reviewer=reviewer, success=False, error=outcome.to_dict()))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                results.append(ReviewerResult(reviewer=reviewer, success=True))

        if failures and len(failures) == len(reviewers):
            raise failures[0]
        return results

    async def list_branches(self, workspace: str, repo_slug: str) -> Any:
        return await self._send(ApiRequest(path=f"{self._repo(workspace, repo_slug)}/branches"))

    async def create_branch(self, workspace: str, repo_slug: str, name: str, target_hash: str) -> Any:
        return await self._send(ApiRequest(
            method="POST",
            path=f"{self._repo(workspace, repo_slug)}/branches",
            body={"name": name, "startPoint": target_hash},
        ))

    async def compare_branches(self, workspace: str, repo_slug: str, source: str, destination: str) -> Any:
        return await self._send(ApiRequest(
            path=f"{self._repo(workspace, repo_slug)}/compare/diff",
            params={"from": source, "to": destination},
        ))

    async def list_commits(self, workspace: str, repo_slug: str, spec: str | None = None) -> Any:
        return await self._send(ApiRequest(
            path=f"{self._repo(workspace, repo_slug)}/commits",
            params={"until": spec} if spec else None,
        ))

    async def get_commit(self, workspace: str, repo_slug: str, commit_hash: str) -> Any:
        return await self._send(ApiRequest(path=f"{self._repo(workspace, repo_slug)}/commits/{encode(commit_hash)}"))

    async def get_commit_diff(self, workspace: str, repo_slug: str, commit_hash: str) -> Any:
        return await self._send(ApiRequest(
            path=f"{self._repo(workspace, repo_slug)}/commits/{encode(commit_hash)}/diff"
        ))

    async def list_workspaces(self) -> Any:
        return await self._send(ApiRequest(path="/projects"))

    async def list_repositories(self, workspace: str) -> Any:
        return await self._send(ApiRequest(path=f"/projects/{encode(workspace)}/repos"))

    async def get_file_content(self, workspace: str, repo_slug: str, file_path: str, commit_hash: str) -> str:
        response = await self._send(ApiRequest(
            path=f"{self._repo(workspace, repo_slug)}/browse/{encode_path(file_path)}",
            params={"at": commit_hash},
        ))
        # Server returns {"lines": [{"text": ...}, ...]}
        lines = response.get("lines") if isinstance(response, dict) else None
        return "\n".join(line.get("text", "") for line in lines or [])
