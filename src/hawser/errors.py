"""Custom exceptions for hawser.

This module defines typed exceptions for better error handling and clearer
error messages throughout the application.

Transfer failures are reported as ``TransferError`` instances. Each one
carries the root cause, a fatality flag and an ordered diagnostic context.
Layers that see the error on its way out add their own context by building
a new error with ``with_context`` and raising that instead; an existing
error is never modified in place.
"""

from types import MappingProxyType
from typing import Mapping, Optional


class HawserError(RuntimeError):
    """Base class for all hawser errors."""
    pass


# Configuration Errors
class ConfigError(HawserError):
    """Endpoint or repository configuration is missing or invalid."""
    pass


# Local Object Store Errors
class ObjectStoreError(HawserError):
    """Base class for local object store errors."""
    pass


class ObjectNotFoundError(ObjectStoreError):
    """Local object does not exist."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Internal object does not exist: {path}")


class DigestMismatchError(ObjectStoreError):
    """Downloaded content doesn't hash to its OID."""

    def __init__(self, oid: str, actual: str):
        self.oid = oid
        self.actual = actual
        super().__init__(
            f"Digest verification failed for {oid}\n"
            f"  Expected: {oid}\n"
            f"  Got:      {actual}\n"
            f"The object may be corrupted or tampered with."
        )


class CredentialError(HawserError):
    """Credentials could not be obtained."""
    pass


class ServerError(HawserError):
    """Error reported by the server in a JSON response body."""

    def __init__(self, message: str, request_id: Optional[str] = None):
        self.message = message
        self.request_id = request_id
        super().__init__(message)


# Transfer Errors
class TransferError(HawserError):
    """Failed transfer with its root cause and diagnostic context.

    Attributes:
        message: Human readable description of the failure
        cause: Underlying exception, if any
        fatal: Whether the failure likely affects every transfer, not just
            this object. Defaults to True.
        context: Ordered, read-only mapping of diagnostic key/value pairs
    """

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        fatal: bool = True,
        context: Optional[Mapping[str, str]] = None,
    ):
        self.message = message
        self.cause = cause
        self.fatal = fatal
        self._context = dict(context or {})
        super().__init__(message)

    @property
    def context(self) -> Mapping[str, str]:
        return MappingProxyType(self._context)

    def with_context(self, *pairs: Mapping[str, str], **entries: str) -> "TransferError":
        """Return a copy of this error with extra context merged in.

        Later values overwrite earlier ones for the same key; a key keeps its
        original position in the context ordering.
        """
        merged = dict(self._context)
        for mapping in pairs:
            merged.update(mapping)
        merged.update(entries)
        return self._replace(context=merged)

    def with_fatal(self, fatal: bool) -> "TransferError":
        """Return a copy of this error with a different fatality flag."""
        return self._replace(fatal=fatal)

    def _replace(self, **changes) -> "TransferError":
        fields = {
            "message": self.message,
            "cause": self.cause,
            "fatal": self.fatal,
            "context": self._context,
        }
        fields.update(changes)
        new = type(self)(**fields)
        new.__cause__ = self.__cause__ if self.__cause__ is not None else self.cause
        return new

    def details(self) -> str:
        """Render message, cause and context for display."""
        lines = [self.message]
        if self.cause is not None and str(self.cause) != self.message:
            lines.append(f"  cause: {self.cause}")
        for key, value in self._context.items():
            lines.append(f"  {key}: {value}")
        return "\n".join(lines)


class TransportError(TransferError):
    """Request could not be sent or the connection failed."""
    pass


class DecodeError(TransferError):
    """Malformed JSON body or media type."""
    pass


class FramingError(TransferError):
    """Framing marker at the start of a response body is missing or wrong."""
    pass


class ShortReadError(FramingError):
    """Response body ended before the framing marker was complete."""
    pass


class ProtocolError(TransferError):
    """Server response doesn't follow the transfer protocol."""
    pass


class AuthError(TransferError):
    """Authentication or authorization failed (401/403)."""
    pass


class NotFoundError(TransferError):
    """Repository or object not found (404)."""
    pass


class ServerFaultError(TransferError):
    """Server side failure (5xx)."""
    pass


class ClientFaultError(TransferError):
    """Any other unsuccessful status."""
    pass


__all__ = [
    "HawserError",
    "ConfigError",
    "ObjectStoreError",
    "ObjectNotFoundError",
    "DigestMismatchError",
    "CredentialError",
    "ServerError",
    "TransferError",
    "TransportError",
    "DecodeError",
    "FramingError",
    "ShortReadError",
    "ProtocolError",
    "AuthError",
    "NotFoundError",
    "ServerFaultError",
    "ClientFaultError",
]
