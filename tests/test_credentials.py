"""Tests for credential providers and the attach/settle helpers."""

import base64
import subprocess
from unittest.mock import Mock, patch

import pytest
import requests

from hawser.credentials import (
    GitCredentialHelper,
    StaticCredentials,
    attach_credentials,
    basic_auth_header,
    get_credential_provider,
    settle_credentials,
)
from hawser.errors import CredentialError

CRED = {"username": "user", "password": "secret"}


def completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(args=["git"], returncode=returncode, stdout=stdout, stderr=stderr)


class TestAttach:
    """Attaching credentials to requests."""

    def test_sets_basic_auth(self):
        provider = Mock()
        provider.fetch.return_value = CRED
        request = requests.Request("GET", "https://git.example.com/objects/abc")

        credential = attach_credentials(request, provider)

        assert credential == CRED
        provider.fetch.assert_called_once_with("https://git.example.com/objects/abc")
        expected = base64.b64encode(b"user:secret").decode("ascii")
        assert request.headers["Authorization"] == f"Basic {expected}"

    @pytest.mark.parametrize("header", ["Authorization", "authorization", "AUTHORIZATION"])
    def test_existing_authorization_kept(self, header):
        """Any casing of an existing header skips the provider."""
        provider = Mock()
        request = requests.Request("PUT", "https://store/x", headers={header: "Bearer t"})

        assert attach_credentials(request, provider) is None

        provider.fetch.assert_not_called()
        assert request.headers[header] == "Bearer t"

    def test_basic_auth_header_non_ascii(self):
        value = basic_auth_header({"username": "zoë", "password": "pä:ss"})
        decoded = base64.b64decode(value[len("Basic "):]).decode("utf-8")
        assert decoded == "zoë:pä:ss"


class TestSettle:
    """Approve/reject based on response status."""

    @pytest.mark.parametrize("status", [200, 201, 202, 204])
    def test_success_approves(self, status):
        provider = Mock()
        settle_credentials(provider, CRED, status)
        provider.approve.assert_called_once_with(CRED)
        provider.reject.assert_not_called()

    @pytest.mark.parametrize("status", [302, 307, 400, 401, 403, 404])
    def test_failure_rejects(self, status):
        provider = Mock()
        settle_credentials(provider, CRED, status)
        provider.reject.assert_called_once_with(CRED)
        provider.approve.assert_not_called()

    @pytest.mark.parametrize("status", [405, 410, 422, 500, 503])
    def test_uninformative_statuses_ignored(self, status):
        provider = Mock()
        settle_credentials(provider, CRED, status)
        provider.approve.assert_not_called()
        provider.reject.assert_not_called()

    def test_no_credential_is_noop(self):
        provider = Mock()
        settle_credentials(provider, None, 200)
        settle_credentials(provider, None, 401)
        provider.approve.assert_not_called()
        provider.reject.assert_not_called()


class TestGitCredentialHelper:
    """git credential fill/approve/reject."""

    def test_fill(self):
        with patch("hawser.credentials.subprocess.run") as run:
            run.return_value = completed(stdout="username=alice\npassword=hunter2\n")

            credential = GitCredentialHelper().fetch("https://git.example.com/team/repo.git/info/media/objects")

        assert credential["username"] == "alice"
        assert credential["password"] == "hunter2"
        assert credential["host"] == "git.example.com"

        args, kwargs = run.call_args
        assert args[0] == ["git", "credential", "fill"]
        assert "protocol=https\n" in kwargs["input"]
        assert "host=git.example.com\n" in kwargs["input"]
        assert "path=team/repo.git/info/media/objects\n" in kwargs["input"]
        assert kwargs["input"].endswith("\n\n")

    def test_fill_strips_userinfo_from_host(self):
        with patch("hawser.credentials.subprocess.run") as run:
            run.return_value = completed(stdout="username=a\npassword=b\n")

            credential = GitCredentialHelper().fetch("https://bob@git.example.com:8443/repo")

        assert credential["host"] == "git.example.com:8443"

    def test_fill_failure(self):
        with patch("hawser.credentials.subprocess.run") as run:
            run.return_value = completed(returncode=128, stderr="fatal: terminal prompts disabled\n")

            with pytest.raises(CredentialError, match="terminal prompts disabled"):
                GitCredentialHelper().fetch("https://git.example.com/repo")

    def test_fill_without_password(self):
        with patch("hawser.credentials.subprocess.run") as run:
            run.return_value = completed(stdout="username=alice\n")

            with pytest.raises(CredentialError, match="no username/password"):
                GitCredentialHelper().fetch("https://git.example.com/repo")

    def test_git_missing(self):
        with patch("hawser.credentials.subprocess.run", side_effect=FileNotFoundError("git")):
            with pytest.raises(CredentialError, match="git executable not found"):
                GitCredentialHelper().fetch("https://git.example.com/repo")

    @pytest.mark.parametrize("action", ["approve", "reject"])
    def test_settle_runs_git(self, action):
        credential = {"protocol": "https", "host": "git.example.com", "username": "a", "password": "b"}
        with patch("hawser.credentials.subprocess.run") as run:
            run.return_value = completed()

            getattr(GitCredentialHelper(), action)(credential)

        args, kwargs = run.call_args
        assert args[0] == ["git", "credential", action]
        assert "username=a\n" in kwargs["input"]
        assert "password=b\n" in kwargs["input"]

    def test_settle_failure_only_warns(self, caplog):
        with patch("hawser.credentials.subprocess.run") as run:
            run.return_value = completed(returncode=1, stderr="helper broke")

            GitCredentialHelper().approve(CRED)

        assert "git credential approve failed" in caplog.text

    def test_settle_without_git_only_warns(self, caplog):
        with patch("hawser.credentials.subprocess.run", side_effect=FileNotFoundError("git")):
            GitCredentialHelper().reject(CRED)

        assert "git credential reject failed" in caplog.text


class TestProviderSelection:
    """Choosing a provider from the environment."""

    def test_static_from_env(self, monkeypatch):
        monkeypatch.setenv("HAWSER_USERNAME", "ci-bot")
        monkeypatch.setenv("HAWSER_PASSWORD", "token")

        provider = get_credential_provider()

        assert isinstance(provider, StaticCredentials)
        assert provider.fetch("https://any") == {"username": "ci-bot", "password": "token"}

    def test_git_by_default(self, monkeypatch):
        monkeypatch.delenv("HAWSER_USERNAME", raising=False)
        monkeypatch.delenv("HAWSER_PASSWORD", raising=False)

        assert isinstance(get_credential_provider(), GitCredentialHelper)

    def test_partial_env_uses_git(self, monkeypatch):
        monkeypatch.setenv("HAWSER_USERNAME", "ci-bot")
        monkeypatch.delenv("HAWSER_PASSWORD", raising=False)

        assert isinstance(get_credential_provider(), GitCredentialHelper)
