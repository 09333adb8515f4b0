"""Models and schemas for Bitbucket MCP Server."""

from .schemas import (
    ApiRequest,
    ConnectionStatus,
    LineType,
    MergeStrategy,
    PullRequestState,
    RemoteDescriptor,
    ReviewerResult,
)

__all__ = [
    "ApiRequest",
    "ConnectionStatus",
    "LineType",
    "MergeStrategy",
    "PullRequestState",
    "RemoteDescriptor",
    "ReviewerResult",
]
