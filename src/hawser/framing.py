"""Media type parsing and framing validation for object downloads.

Object bodies served as ``application/vnd.git-media`` start with a boundary
line, ``--<boundary>\\n``, where the boundary is given by the ``header``
parameter of the Content-Type. The line must be consumed and checked before
the payload can be read, and its length is not part of the payload size.
"""

import re
from typing import BinaryIO, Dict, Tuple

from .constants import MEDIA_TYPE
from .errors import DecodeError, FramingError, ShortReadError

_TOKEN = r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+"
_MEDIA_TYPE = re.compile(rf"({_TOKEN})/({_TOKEN})")
_PARAM = re.compile(rf'\s*;\s*({_TOKEN})\s*=\s*("(?:[^"\\]|\\.)*"|{_TOKEN})\s*')
_TRAILER = re.compile(r"[\s;]*")
_QUOTED_PAIR = re.compile(r"\\(.)")


def parse_media_type(content_type: str) -> Tuple[str, Dict[str, str]]:
    """Split a Content-Type value into base media type and parameters.

    The media type and parameter names are lowercased.

    Raises:
        ValueError: If the value is not a well-formed media type
    """
    base, _, rest = content_type.partition(";")
    base = base.strip()
    if not _MEDIA_TYPE.fullmatch(base):
        raise ValueError(f"no media type in {content_type!r}")

    params: Dict[str, str] = {}
    rest = ";" + rest if rest else ""
    pos = 0
    while pos < len(rest):
        match = _PARAM.match(rest, pos)
        if not match:
            if _TRAILER.fullmatch(rest, pos):
                break
            raise ValueError(f"invalid media parameter in {content_type!r}")

        name, value = match.group(1).lower(), match.group(2)
        if value.startswith('"'):
            value = _QUOTED_PAIR.sub(r"\1", value[1:-1])
        if name in params:
            raise ValueError(f"duplicate parameter name {name!r}")
        params[name] = value
        pos = match.end()

    return base.lower(), params


def read_exactly(reader: BinaryIO, size: int) -> bytes:
    """Read ``size`` bytes, fewer only if the stream ends first."""
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = reader.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def validate_media_header(content_type: str, reader: BinaryIO) -> int:
    """Check the framing marker at the start of a response body.

    For the hawser media type, reads past the ``--<boundary>\\n`` marker and
    returns its length. Any other media type has no marker and returns 0
    without touching the reader.

    Raises:
        DecodeError: If the content type can't be parsed or lacks the
            ``header`` parameter
        ShortReadError: If the body ends before the marker is complete
        FramingError: If the marker doesn't match the boundary
    """
    try:
        media_type, params = parse_media_type(content_type)
    except ValueError as e:
        raise DecodeError(f"Invalid Media Type: {content_type}", cause=e)

    if media_type != MEDIA_TYPE:
        return 0

    boundary = params.get("header")
    if boundary is None:
        raise DecodeError(f"Missing Git Media header in {content_type}")

    expected = f"--{boundary}\n".encode("utf-8")
    try:
        actual = read_exactly(reader, len(expected))
    except OSError as e:
        raise ShortReadError("Error reading response body.", cause=e)

    if len(actual) < len(expected):
        raise ShortReadError(
            "Error reading response body.",
            cause=EOFError(f"expected {len(expected)} bytes, got {len(actual)}"),
        )

    if actual != expected:
        raise FramingError(f"Invalid header: {expected!r} expected, got {actual!r}")

    return len(expected)


__all__ = ["parse_media_type", "read_exactly", "validate_media_header"]
