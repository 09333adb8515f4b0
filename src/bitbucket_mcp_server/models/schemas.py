"""Pydantic models for the MCP server."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

PullRequestState = Literal["OPEN", "MERGED", "DECLINED", "SUPERSEDED"]
MergeStrategy = Literal["merge_commit", "squash", "fast_forward"]
LineType = Literal["ADDED", "CONTEXT", "REMOVED"]


class RemoteDescriptor(BaseModel):
    """Host, workspace and repository slug parsed from a git remote URL."""
    model_config = ConfigDict(frozen=True)

    host: str
    workspace: str
    repo_slug: str


class ApiRequest(BaseModel):
    """One outbound REST call, relative to the API base URL."""
    model_config = ConfigDict(frozen=True)

    method: Literal["GET", "POST", "PUT", "DELETE"] = "GET"
    path: str
    params: dict[str, Any] | None = None
    body: Any = None
    raw: bool = False


class ReviewerResult(BaseModel):
    """Outcome of adding a single reviewer."""
    reviewer: str
    success: bool
    error: dict[str, Any] | None = None


class ConnectionStatus(BaseModel):
    """Result of a connectivity check. Never raised, always returned."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool
    error: Exception | None = None
