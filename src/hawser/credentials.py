"""Credential lookup and caching.

The transfer client never stores credentials itself. It asks a
``CredentialProvider`` for a credential before each request and tells the
provider afterwards whether the credential worked, so the provider can cache
or forget it.
"""

import base64
import logging
import os
import subprocess
import urllib.parse
from typing import Dict, Optional, Protocol

import requests

from .constants import PASSWORD_ENV, USERNAME_ENV
from .errors import CredentialError

Credential = Dict[str, str]

logger = logging.getLogger(__name__)


class CredentialProvider(Protocol):
    """Source of credentials for a URL."""

    def fetch(self, url: str) -> Credential:
        """Get a credential with at least ``username`` and ``password``."""
        ...

    def approve(self, credential: Credential) -> None:
        """Mark a credential as accepted by the server."""
        ...

    def reject(self, credential: Credential) -> None:
        """Mark a credential as refused by the server."""
        ...


class GitCredentialHelper:
    """Credentials from ``git credential``.

    Uses whatever credential helpers the user has configured for git, so a
    password typed once is remembered the same way it is for git itself.
    """

    def __init__(self, git: str = "git"):
        self.git = git

    def fetch(self, url: str) -> Credential:
        """Run ``git credential fill`` for the URL.

        Raises:
            CredentialError: If git fails or returns no username/password
        """
        parsed = urllib.parse.urlsplit(url)
        query = {
            "protocol": parsed.scheme,
            "host": parsed.netloc.rpartition("@")[2],
            "path": parsed.path.lstrip("/"),
        }
        result = self._run("fill", query)
        if result.returncode != 0:
            error_msg = result.stderr.strip() or result.stdout.strip()
            raise CredentialError(f"git credential fill failed for {query['host']}: {error_msg}")

        credential = dict(query)
        credential.update(_parse_credential_output(result.stdout))
        if "username" not in credential or "password" not in credential:
            raise CredentialError(f"git credential fill returned no username/password for {query['host']}")
        return credential

    def approve(self, credential: Credential) -> None:
        self._settle("approve", credential)

    def reject(self, credential: Credential) -> None:
        self._settle("reject", credential)

    def _settle(self, action: str, credential: Credential) -> None:
        try:
            result = self._run(action, credential)
        except (CredentialError, OSError) as e:
            logger.warning(f"git credential {action} failed: {e}")
            return
        if result.returncode != 0:
            logger.warning(f"git credential {action} failed: {result.stderr.strip()}")

    def _run(self, action: str, credential: Credential) -> subprocess.CompletedProcess:
        payload = "".join(f"{key}={value}\n" for key, value in credential.items() if value)
        try:
            return subprocess.run(
                [self.git, "credential", action],
                input=payload + "\n",
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as e:
            raise CredentialError(f"git executable not found: {self.git}") from e


def _parse_credential_output(output: str) -> Credential:
    """Parse ``key=value`` lines from git credential."""
    credential = {}
    for line in output.splitlines():
        key, sep, value = line.partition("=")
        if sep:
            credential[key.strip()] = value
    return credential


class StaticCredentials:
    """Credentials from HAWSER_USERNAME / HAWSER_PASSWORD."""

    def fetch(self, url: str) -> Credential:
        return {
            "username": os.environ.get(USERNAME_ENV, ""),
            "password": os.environ.get(PASSWORD_ENV, ""),
        }

    def approve(self, credential: Credential) -> None:
        pass

    def reject(self, credential: Credential) -> None:
        pass


def get_credential_provider() -> CredentialProvider:
    """Get appropriate credential provider for standalone CLI use."""
    # In CI, use env vars
    if os.environ.get(USERNAME_ENV) and os.environ.get(PASSWORD_ENV):
        return StaticCredentials()
    return GitCredentialHelper()


def basic_auth_header(credential: Credential) -> str:
    """Encode a credential as an HTTP Basic Authorization value."""
    token = f"{credential.get('username', '')}:{credential.get('password', '')}"
    return "Basic " + base64.b64encode(token.encode("utf-8")).decode("ascii")


def attach_credentials(request: requests.Request, provider: CredentialProvider) -> Optional[Credential]:
    """Set the Authorization header on a request.

    A request that already carries an Authorization header is left alone
    and no credential is returned.
    """
    if any(key.lower() == "authorization" for key in request.headers):
        return None

    credential = provider.fetch(request.url)
    request.headers["Authorization"] = basic_auth_header(credential)
    return credential


def settle_credentials(
    provider: CredentialProvider, credential: Optional[Credential], status: int
) -> None:
    """Approve or reject a credential based on the response status.

    Below 300 the credential is approved, from 300 up to 404 it is rejected.
    405 and above say nothing about the credential and are ignored.
    """
    if credential is None:
        return

    if status < 300:
        provider.approve(credential)
        return

    if status < 405:
        provider.reject(credential)


__all__ = [
    "Credential",
    "CredentialProvider",
    "GitCredentialHelper",
    "StaticCredentials",
    "get_credential_provider",
    "basic_auth_header",
    "attach_credentials",
    "settle_credentials",
]
