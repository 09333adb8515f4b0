"""Tests for remote parsing and the git service."""

import subprocess

import pytest

from bitbucket_mcp_server.services.git import GitError, GitService, UnsupportedRemoteError, parse_remote


class TestParseRemote:
    @pytest.mark.parametrize(
        "remote_url",
        [
            "git@bitbucket.org:myteam/my-repo.git",
            "git@bitbucket.org:myteam/my-repo",
            "https://bitbucket.org/myteam/my-repo.git",
            "https://user@bitbucket.org/myteam/my-repo",
            "http://user@bitbucket.org/myteam/my-repo.git",
            "HTTPS://bitbucket.org/myteam/my-repo.git",
        ],
    )
    def test_supported_shapes(self, remote_url):
        """Test SSH and HTTPS remotes, with and without user and .git suffix."""
        remote = parse_remote(remote_url)
        assert remote.host == "bitbucket.org"
        assert remote.workspace == "myteam"
        assert remote.repo_slug == "my-repo"

    def test_self_hosted_host(self):
        """Test non-Cloud hosts are preserved."""
        remote = parse_remote("git@git.example.com:PROJ/service.git")
        assert remote.host == "git.example.com"
        assert remote.workspace == "PROJ"
        assert remote.repo_slug == "service"

    def test_surrounding_whitespace(self):
        """Test trailing newlines from git output are ignored."""
        assert parse_remote("git@bitbucket.org:myteam/my-repo.git\n").repo_slug == "my-repo"

    @pytest.mark.parametrize("remote_url", ["", "not a url", "/local/path/repo.git", "ftp://host/ws/repo"])
    def test_unsupported_shapes(self, remote_url):
        """Test anything else is rejected."""
        with pytest.raises(UnsupportedRemoteError):
            parse_remote(remote_url)


class TestGitService:
    def test_current_branch(self, temp_git_repo):
        """Test reading the checked-out branch."""
        assert GitService(temp_git_repo).get_current_branch() == "main"

    def test_current_branch_from_subdirectory(self, temp_git_repo):
        """Test the repository root is found from a nested directory."""
        nested = temp_git_repo / "a" / "b"
        nested.mkdir(parents=True)
        service = GitService(nested)
        assert service.find_repo_root() == temp_git_repo.resolve()
        assert service.get_current_branch() == "main"

    def test_remote(self, temp_git_repo):
        """Test the origin remote is parsed into a descriptor."""
        subprocess.run(
            ["git", "remote", "add", "origin", "git@bitbucket.org:myteam/my-repo.git"],
            cwd=temp_git_repo,
            check=True,
            capture_output=True,
        )
        remote = GitService(temp_git_repo).get_remote()
        assert remote.workspace == "myteam"
        assert remote.repo_slug == "my-repo"

    def test_missing_remote(self, temp_git_repo):
        """Test a repository without origin raises GitError."""
        with pytest.raises(GitError):
            GitService(temp_git_repo).get_remote_url()

    def test_not_a_repository(self, tmp_path):
        """Test directories outside any repository raise GitError."""
        with pytest.raises(GitError):
            GitService(tmp_path).find_repo_root()
