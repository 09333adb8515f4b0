"""Services for Bitbucket MCP Server."""

from .bitbucket_client import BitbucketClient
from .dialects import CloudDialect, Dialect, ServerDialect
from .errors import BitbucketError, ErrorKind
from .git import GitError, GitService, UnsupportedRemoteError, parse_remote

__all__ = [
    "BitbucketClient",
    "BitbucketError",
    "CloudDialect",
    "Dialect",
    "ErrorKind",
    "GitError",
    "GitService",
    "ServerDialect",
    "UnsupportedRemoteError",
    "parse_remote",
]
