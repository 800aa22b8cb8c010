"""Diagnostic context for transfer errors.

Records what is needed to understand a failed call without repeating it:
the endpoint, the request line, the response status and all headers.
Authorization values are replaced with a placeholder.
"""

from typing import Dict, Mapping, Union

import requests

from .constants import REDACTED
from .errors import TransferError

HIDDEN_HEADERS = frozenset({"authorization"})

AnyRequest = Union[requests.Request, requests.PreparedRequest]


def header_context(prefix: str, headers: Mapping[str, str]) -> Dict[str, str]:
    """Context entries for a set of headers, keyed ``<prefix>:<name>``."""
    context = {}
    for key, value in headers.items():
        if key.lower() in HIDDEN_HEADERS:
            value = REDACTED
        context[f"{prefix}:{key}"] = value
    return context


def request_context(endpoint: str, request: AnyRequest) -> Dict[str, str]:
    """Context entries describing a request."""
    context = {
        "Endpoint": endpoint,
        "URL": f"{request.method} {request.url}",
    }
    context.update(header_context("Request", request.headers or {}))
    return context


def response_context(endpoint: str, response: requests.Response) -> Dict[str, str]:
    """Context entries describing a response and the request behind it."""
    status = str(response.status_code)
    if response.reason:
        status = f"{status} {response.reason}"

    context = {"Status": status}
    context.update(header_context("Response", response.headers))
    if response.request is not None:
        context.update(request_context(endpoint, response.request))
    else:
        context["Endpoint"] = endpoint
    return context


def with_request_context(err: TransferError, endpoint: str, request: AnyRequest) -> TransferError:
    return err.with_context(request_context(endpoint, request))


def with_response_context(err: TransferError, endpoint: str, response: requests.Response) -> TransferError:
    return err.with_context(response_context(endpoint, response))


__all__ = [
    "header_context",
    "request_context",
    "response_context",
    "with_request_context",
    "with_response_context",
]
