"""Shared test fixtures and utilities."""

import hashlib
import io
import json
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from unittest.mock import Mock

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from hawser.config import EndpointConfig
from hawser.transport import RedirectSignal

ENDPOINT = "https://git.example.com/team/repo.git/info/media"


def make_response(
    status: int,
    body: bytes = b"",
    headers: Optional[Dict[str, str]] = None,
    request: Optional[requests.PreparedRequest] = None,
    reason: str = "",
    url: str = "",
) -> requests.Response:
    """Build a response without touching the network."""
    response = requests.Response()
    response.status_code = status
    response.reason = reason
    response.headers = CaseInsensitiveDict(headers or {})
    response.raw = io.BytesIO(body)
    response.request = request
    response.url = url or (request.url if request is not None else "")
    return response


@dataclass
class SentRequest:
    """What the fake executor saw."""
    method: str
    url: str
    headers: CaseInsensitiveDict
    body: bytes

    def json(self):
        return json.loads(self.body)


@dataclass
class Reply:
    status: int
    body: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)
    redirect: bool = False
    error: Optional[Exception] = None


class FakeExecutor:
    """Executor that replays scripted replies and records every request.

    Request bodies are read in full, the way a real transport would,
    so progress callbacks fire.
    """

    def __init__(self):
        self.replies: List[Reply] = []
        self.calls: List[SentRequest] = []

    def queue(self, status: int = 200, body=b"", headers=None, redirect=False, error=None) -> "FakeExecutor":
        if isinstance(body, (dict, list)):
            body = json.dumps(body).encode("utf-8")
        elif isinstance(body, str):
            body = body.encode("utf-8")
        self.replies.append(Reply(status, body, dict(headers or {}), redirect, error))
        return self

    def send(self, request: requests.Request, stream: bool = False) -> requests.Response:
        prepared = request.prepare()
        body = prepared.body
        if hasattr(body, "read"):
            data = b"".join(iter(lambda: body.read(8192), b""))
        elif isinstance(body, str):
            data = body.encode("utf-8")
        else:
            data = body or b""
        self.calls.append(SentRequest(prepared.method, prepared.url, prepared.headers, data))

        if not self.replies:
            raise AssertionError(f"Unexpected request: {prepared.method} {prepared.url}")
        reply = self.replies.pop(0)
        if reply.error is not None:
            raise reply.error

        response = make_response(reply.status, reply.body, reply.headers, request=prepared)
        if reply.redirect:
            raise RedirectSignal(response)
        return response


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def credentials():
    """Credential provider mock handing out a fixed credential."""
    provider = Mock()
    provider.fetch.return_value = {"username": "user", "password": "secret"}
    return provider


@pytest.fixture
def config():
    return EndpointConfig(endpoint=ENDPOINT)


@pytest.fixture
def client(config, credentials, executor):
    from hawser.client import TransferClient
    return TransferClient(config, credentials, executor=executor, user_agent="hawser/test")


@pytest.fixture
def local_object(tmp_path):
    """Factory fixture writing content to a file named by its SHA-256."""
    def _make(content: bytes = b"hello large file\n"):
        oid = hashlib.sha256(content).hexdigest()
        path = tmp_path / "objects" / oid[:2] / oid[2:4] / oid
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path
    return _make


@pytest.fixture
def endpoint():
    return ENDPOINT
