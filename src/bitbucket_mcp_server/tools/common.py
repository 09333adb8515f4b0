"""Argument types and result handling shared by the tool modules."""

import json
import logging
from typing import Annotated, Any, Awaitable

from fastmcp.exceptions import ToolError
from pydantic import Field
from pydantic_core import to_jsonable_python

from ..services.errors import BitbucketError

logger = logging.getLogger(__name__)

NonEmptyStr = Annotated[str, Field(min_length=1)]

Workspace = Annotated[str, Field(min_length=1, description="Workspace slug (Cloud) or project key (Server)")]
RepoSlug = Annotated[str, Field(min_length=1, description="Repository slug")]
PrId = Annotated[int, Field(ge=1, description="Pull request ID")]
Version = Annotated[
    int | None,
    Field(ge=0, description="Server only. Read from the pull request if omitted."),
]


def to_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=to_jsonable_python)


def to_text(data: Any) -> str:
    """Raw text responses pass through unchanged; everything else becomes pretty JSON."""
    return data if isinstance(data, str) else to_json(data)


async def call_api(request: Awaitable[Any]) -> str:
    """
    Await a client call and render its result as tool output.

    BitbucketError failures are re-raised as ToolError carrying the structured
    error as JSON, so the caller receives an isError result with errorKind,
    statusCode, suggestion and isRetryable.
    """
    try:
        data = await request
    except BitbucketError as e:
        logger.warning("Bitbucket call failed: %s %s", e.kind.value, e.message)
        raise ToolError(to_json(e.to_dict())) from e
    return to_text(data)
