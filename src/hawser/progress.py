"""Progress-reporting stream wrapper."""

from typing import BinaryIO, Iterator, Optional

from .models import ProgressCallback

CHUNK_SIZE = 64 * 1024


class CallbackReader:
    """File-like wrapper that reports bytes read to a callback.

    The callback runs on the reading thread after every read, receiving the
    total size and the number of bytes read so far.

    ``__len__`` returns the total size so requests sends a Content-Length
    instead of chunked encoding.
    """

    def __init__(self, reader: BinaryIO, total_size: int, callback: Optional[ProgressCallback] = None):
        self.reader = reader
        self.total_size = total_size
        self.callback = callback
        self.read_so_far = 0

    def read(self, size: int = -1) -> bytes:
        data = self.reader.read(size)
        if data:
            self.read_so_far += len(data)
            if self.callback is not None:
                self.callback(self.total_size, self.read_so_far)
        return data

    def __iter__(self) -> Iterator[bytes]:
        return iter(lambda: self.read(CHUNK_SIZE), b"")

    def __len__(self) -> int:
        return self.total_size

    def close(self) -> None:
        self.reader.close()

    def __enter__(self) -> "CallbackReader":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
