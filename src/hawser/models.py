"""Data models for the transfer protocol.

Wire documents (hypermedia links, server error bodies) are pydantic models.
Negotiation outcomes are small frozen dataclasses so the upload path can
branch on the kind of outcome instead of on raw status codes.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Protocol, Union

from pydantic import BaseModel, ConfigDict, Field


class ProgressCallback(Protocol):
    """Progress reporting interface."""

    def __call__(self, total: int, transferred: int) -> None:
        """Called with the total size and the bytes read so far."""
        ...


# ============= Wire documents =============

class Link(BaseModel):
    """Target of a hypermedia relation."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    href: str
    headers: Dict[str, str] = Field(default_factory=dict, alias="header")


class LinkMetadata(BaseModel):
    """``_links`` document returned by a hypermedia-capable server."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    links: Optional[Dict[str, Link]] = Field(default=None, alias="_links")

    def rel(self, name: str) -> Optional[Link]:
        """Get a relation by name, or None if absent."""
        if not self.links:
            return None
        return self.links.get(name)


class ErrorBody(BaseModel):
    """JSON body of an unsuccessful response."""

    message: str = ""
    request_id: Optional[str] = None


class ObjectRequest(BaseModel):
    """Body of the negotiation and verify requests."""

    oid: str
    size: int


# ============= Transfers =============

@dataclass(frozen=True)
class TransferDescriptor:
    """One upload: where the object lives locally and how to report progress."""

    local_path: Path
    display_name: str = ""
    progress_callback: Optional[ProgressCallback] = field(default=None, compare=False)

    @property
    def oid(self) -> str:
        return Path(self.local_path).name

    @property
    def name(self) -> str:
        return self.display_name or str(self.local_path)


# ============= Negotiation outcomes =============

@dataclass(frozen=True)
class AlreadyStored:
    """Server already has the object (200)."""


@dataclass(frozen=True)
class LegacyFallback:
    """Server predates hypermedia negotiation (302/405)."""

    status: int


@dataclass(frozen=True)
class Hypermedia:
    """Server returned links for the transfer (202)."""

    links: Optional[LinkMetadata]


@dataclass(frozen=True)
class Unexpected:
    """Any other negotiation status."""

    status: int


NegotiationOutcome = Union[AlreadyStored, LegacyFallback, Hypermedia, Unexpected]


def classify_negotiation(status: int, links: Optional[LinkMetadata] = None) -> NegotiationOutcome:
    """Map a negotiation status code to its outcome."""
    if status == 200:
        return AlreadyStored()
    if status in (302, 405):
        return LegacyFallback(status)
    if status == 202:
        return Hypermedia(links)
    return Unexpected(status)


__all__ = [
    "ProgressCallback",
    "Link",
    "LinkMetadata",
    "ErrorBody",
    "ObjectRequest",
    "TransferDescriptor",
    "AlreadyStored",
    "LegacyFallback",
    "Hypermedia",
    "Unexpected",
    "NegotiationOutcome",
    "classify_negotiation",
]
