"""Git operations service."""

import re
import subprocess
from pathlib import Path

from ..models.schemas import RemoteDescriptor


class GitError(Exception):
    """Raised when a git operation fails."""
    pass


class UnsupportedRemoteError(ValueError):
    """Raised when a remote URL matches neither the SSH nor the HTTPS shape."""
    pass


# git@bitbucket.org:workspace/repo.git
_SSH_REMOTE = re.compile(r"^[^@\s]+@([^:/\s]+):([^/\s]+)/(.+?)(?:\.git)?$", re.IGNORECASE)
# https://[user@]bitbucket.org/workspace/repo.git
_HTTPS_REMOTE = re.compile(r"^https?://(?:[^@/\s]+@)?([^/\s]+)/([^/\s]+)/(.+?)(?:\.git)?$", re.IGNORECASE)


def parse_remote(remote_url: str) -> RemoteDescriptor:
    """
    Extract host, workspace and repository slug from a git remote URL.

    Supports SSH (user@host:workspace/repo[.git]) and HTTP(S)
    (scheme://[user@]host/workspace/repo[.git]) remotes.

    Raises:
        UnsupportedRemoteError if the URL matches neither shape
    """
    remote_url = remote_url.strip()
    for pattern in (_SSH_REMOTE, _HTTPS_REMOTE):
        match = pattern.match(remote_url)
        if match:
            host, workspace, repo_slug = match.groups()
            return RemoteDescriptor(host=host, workspace=workspace, repo_slug=repo_slug)
    raise UnsupportedRemoteError(f"Unsupported Bitbucket remote URL: {remote_url}")


class GitService:
    """Service for git operations."""

    def __init__(self, working_dir: Path):
        self.working_dir = working_dir

    def find_repo_root(self) -> Path:
        """Walk up from the working directory to the first directory containing .git."""
        current = Path(self.working_dir).resolve()
        for candidate in (current, *current.parents):
            if (candidate / ".git").exists():
                return candidate
        raise GitError("No git repository found from current directory upwards")

    def get_remote_url(self, remote: str = "origin") -> str:
        """Get the URL of a configured remote."""
        try:
            result = subprocess.run(
                ["git", "config", "--get", f"remote.{remote}.url"],
                cwd=self.find_repo_root(),
                capture_output=True,
                text=True,
                check=True
            )
        except subprocess.CalledProcessError as e:
            raise GitError(f"Failed to get git remote: {e.stderr or e.stdout}") from e
        return result.stdout.strip()

    def get_remote(self, remote: str = "origin") -> RemoteDescriptor:
        """Parse the configured remote into a RemoteDescriptor."""
        return parse_remote(self.get_remote_url(remote))

    def get_current_branch(self) -> str:
        """Get the current git branch name."""
        try:
            result = subprocess.run(
                ["git", "branch", "--show-current"],
                cwd=self.find_repo_root(),
                capture_output=True,
                text=True,
                check=True
            )
            branch = result.stdout.strip()
            if not branch:
                raise GitError("Not on a branch (possibly detached HEAD)")
            return branch
        except subprocess.CalledProcessError as e:
            raise GitError(f"Failed to get current branch: {e.stderr}") from e
