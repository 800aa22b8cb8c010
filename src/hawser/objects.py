"""Local object store.

Objects are stored by OID with sharding: base_dir/ab/cd/<oid>
"""

import hashlib
import logging
import os
import tempfile
from pathlib import Path
from typing import BinaryIO, Tuple, Union

from .errors import DigestMismatchError, ObjectNotFoundError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def oid_from_path(path: PathLike) -> str:
    """The OID of a local object is its file name."""
    return Path(path).name


def open_object(path: PathLike) -> Tuple[BinaryIO, int]:
    """Open a local object for reading.

    Returns:
        (reader, size in bytes)

    Raises:
        ObjectNotFoundError: If the object file doesn't exist
    """
    try:
        reader = open(path, "rb")
    except FileNotFoundError as e:
        raise ObjectNotFoundError(str(path)) from e

    try:
        size = os.fstat(reader.fileno()).st_size
    except OSError:
        reader.close()
        raise
    return reader, size


def object_size(path: PathLike) -> int:
    """Size of a local object in bytes."""
    try:
        return Path(path).stat().st_size
    except FileNotFoundError as e:
        raise ObjectNotFoundError(str(path)) from e


class LocalObjectStore:
    """Sharded on-disk store for downloaded and to-be-uploaded objects."""

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)

    def path(self, oid: str) -> Path:
        """Path of an object, whether or not it exists."""
        if not oid or "/" in oid or "\\" in oid or oid in (".", ".."):
            raise ValueError(f"Invalid object id: {oid!r}")
        return self.base_dir / oid[:2] / oid[2:4] / oid

    def exists(self, oid: str) -> bool:
        return self.path(oid).exists()

    def write(self, oid: str, stream: BinaryIO, chunk_size: int = 8192) -> Path:
        """Copy a stream into the store and check it hashes to the OID.

        The object appears in the store only once it is complete and
        verified.

        Raises:
            DigestMismatchError: If the content's SHA-256 isn't the OID
        """
        dest = self.path(oid)
        dest.parent.mkdir(parents=True, exist_ok=True)

        fd, tmppath = tempfile.mkstemp(prefix=f".{oid}.partial-", dir=dest.parent)
        try:
            sha256 = hashlib.sha256()
            with os.fdopen(fd, "wb") as f:
                for chunk in iter(lambda: stream.read(chunk_size), b""):
                    sha256.update(chunk)
                    f.write(chunk)
                f.flush()
                os.fsync(f.fileno())

            actual = sha256.hexdigest()
            if actual != oid:
                raise DigestMismatchError(oid, actual)

            os.replace(tmppath, dest)
            logger.debug("Stored object %s", dest)
        except BaseException:
            try:
                os.unlink(tmppath)
            except OSError:
                pass
            raise

        return dest


__all__ = ["oid_from_path", "open_object", "object_size", "LocalObjectStore"]
