"""HTTP transport used by the transfer client.

The executor sends one ``requests.Request`` and returns the final response.
Redirects are followed for safe methods only. A redirect answer to any other
method is handed back to the caller as a ``RedirectSignal``.
"""

import logging
import urllib.parse
from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Protocol

import requests

logger = logging.getLogger(__name__)

REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})


class RedirectSignal(Exception):
    """A redirect was received and not followed.

    Carries the redirect response so the caller can inspect it.
    """

    def __init__(self, response: requests.Response):
        self.response = response
        super().__init__(
            f"Redirect {response.status_code} not followed for "
            f"{response.request.method} {response.request.url}"
        )


@dataclass(frozen=True)
class RedirectPolicy:
    """Which requests may follow redirects, and how many times."""

    max_redirects: int = 3
    follow_methods: FrozenSet[str] = field(default_factory=lambda: frozenset({"GET", "HEAD", "OPTIONS"}))


class HttpExecutor(Protocol):
    """Sends requests."""

    def send(self, request: requests.Request, stream: bool = False) -> requests.Response:
        """Send a request and return the final response.

        Raises:
            RedirectSignal: If a redirect was received but not followed
            requests.RequestException: On transport failure
        """
        ...


class RequestsExecutor:
    """Executor backed by a ``requests.Session``."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        policy: Optional[RedirectPolicy] = None,
    ):
        self.session = session or requests.Session()
        self.policy = policy or RedirectPolicy()

    def send(self, request: requests.Request, stream: bool = False) -> requests.Response:
        prepared = self.session.prepare_request(request)
        response = self.session.send(prepared, allow_redirects=False, stream=stream)

        redirects = 0
        while response.status_code in REDIRECT_STATUSES and "Location" in response.headers:
            if request.method.upper() not in self.policy.follow_methods:
                raise RedirectSignal(response)

            if redirects >= self.policy.max_redirects:
                response.close()
                raise requests.TooManyRedirects(
                    f"stopped after {self.policy.max_redirects} redirects",
                    response=response,
                )
            redirects += 1

            location = urllib.parse.urljoin(response.url, response.headers["Location"])
            follow = requests.Request(
                request.method,
                location,
                headers=self._redirect_headers(request, location),
            )
            logger.debug(f"api: redirect {request.method} {prepared.url} to {location}")
            response.close()

            prepared = self.session.prepare_request(follow)
            response = self.session.send(prepared, allow_redirects=False, stream=stream)

        return response

    def _redirect_headers(self, original: requests.Request, location: str) -> dict:
        """Carry the original headers over to a redirect target.

        Authorization is only carried when scheme and host stay the same.
        """
        source = urllib.parse.urlsplit(original.url)
        target = urllib.parse.urlsplit(location)
        same_origin = (source.scheme, source.netloc) == (target.scheme, target.netloc)

        headers = {}
        for key, value in original.headers.items():
            if key.lower() == "authorization" and not same_origin:
                continue
            headers[key] = value
        return headers


__all__ = ["RedirectSignal", "RedirectPolicy", "HttpExecutor", "RequestsExecutor"]
