"""Tests for push credential handling."""

from __future__ import annotations

import subprocess
from unittest.mock import MagicMock, patch

import pygit2

from coverplane.publish.credentials import HelperCredentials, fill_credentials


class TestHelperCredentials:
    """Tests for HelperCredentials."""

    def test_ssh_uses_agent_with_url_username(self) -> None:
        allowed = pygit2.enums.CredentialType.SSH_KEY
        result = HelperCredentials().credentials("ssh://ci@host/repo.git", "ci", allowed)
        assert isinstance(result, pygit2.KeypairFromAgent)
        assert result._username == "ci"

    def test_ssh_defaults_to_git_user(self) -> None:
        allowed = pygit2.enums.CredentialType.SSH_KEY
        result = HelperCredentials().credentials("git@host:repo.git", None, allowed)
        assert isinstance(result, pygit2.KeypairFromAgent)
        assert result._username == "git"

    @patch("subprocess.run")
    def test_https_uses_helper(self, mock_run: MagicMock) -> None:
        mock_run.return_value = MagicMock(
            returncode=0,
            stdout="protocol=https\nhost=example.com\nusername=bot\npassword=token\n",
        )
        allowed = pygit2.enums.CredentialType.USERPASS_PLAINTEXT

        result = HelperCredentials().credentials("https://example.com/o/r.git", None, allowed)

        assert isinstance(result, pygit2.UserPass)
        assert result._username == "bot"
        assert result._password == "token"

    @patch("subprocess.run")
    def test_https_helper_failure_returns_none(self, mock_run: MagicMock) -> None:
        mock_run.return_value = MagicMock(returncode=1, stdout="")
        allowed = pygit2.enums.CredentialType.USERPASS_PLAINTEXT
        assert HelperCredentials().credentials("https://example.com/r.git", None, allowed) is None


class TestFillCredentials:
    """Tests for fill_credentials request building."""

    @patch("subprocess.run")
    def test_request_fields(self, mock_run: MagicMock) -> None:
        mock_run.return_value = MagicMock(returncode=0, stdout="")

        fill_credentials("https://example.com:8443/org/repo.git")

        sent = mock_run.call_args.kwargs["input"]
        assert sent.splitlines() == [
            "protocol=https",
            "host=example.com",
            "port=8443",
            "path=org/repo.git",
        ]
        assert sent.endswith("\n")

    @patch("subprocess.run")
    def test_incomplete_answer_returns_none(self, mock_run: MagicMock) -> None:
        mock_run.return_value = MagicMock(returncode=0, stdout="username=bot\n")
        assert fill_credentials("https://example.com/r.git") is None

    @patch("subprocess.run", side_effect=subprocess.TimeoutExpired(["git"], 30))
    def test_timeout_returns_none(self, _mock_run: MagicMock) -> None:
        assert fill_credentials("https://example.com/r.git") is None

    @patch("subprocess.run", side_effect=FileNotFoundError("git"))
    def test_missing_git_returns_none(self, _mock_run: MagicMock) -> None:
        assert fill_credentials("https://example.com/r.git") is None
