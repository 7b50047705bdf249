"""Stream facade that owns an archive, its byte stream and one entry stream."""

from __future__ import annotations

import io
import logging
import os
from typing import Any, BinaryIO, List, Optional
from zipfile import ZipFile

from .exceptions import StreamCloseError

logger = logging.getLogger(__name__)


class ChainedStream(io.BufferedIOBase):
    """Binary stream over a zip entry that also owns the archive it came from.

    Reads, seeks and writes go straight to the entry stream. Closing releases
    the entry stream, the archive handle and the container byte stream together,
    exactly once, attempting every close even when an earlier one fails.
    """

    def __init__(
        self,
        archive: ZipFile,
        container_stream: BinaryIO,
        entry_stream: BinaryIO,
        size: Optional[int] = None,
    ) -> None:
        super().__init__()
        self._archive = archive
        self._container_stream = container_stream
        self._entry_stream = entry_stream
        self._size = size

    def _check_open(self) -> None:
        if self.closed:
            raise ValueError("I/O operation on closed file.")

    # Reading

    def readable(self) -> bool:
        self._check_open()
        return self._entry_stream.readable()

    def read(self, size: Optional[int] = -1) -> bytes:
        self._check_open()
        return self._entry_stream.read(-1 if size is None else size)

    def read1(self, size: int = -1) -> bytes:
        self._check_open()
        read1 = getattr(self._entry_stream, "read1", None)
        if read1 is None:
            return self._entry_stream.read(size)
        return read1(size)

    def readinto(self, buffer: Any) -> int:
        self._check_open()
        view = memoryview(buffer).cast("B")
        data = self._entry_stream.read(len(view))
        view[: len(data)] = data
        return len(data)

    # Positioning

    def seekable(self) -> bool:
        self._check_open()
        return self._entry_stream.seekable()

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        self._check_open()
        return self._entry_stream.seek(offset, whence)

    def tell(self) -> int:
        self._check_open()
        return self._entry_stream.tell()

    @property
    def position(self) -> int:
        return self.tell()

    @position.setter
    def position(self, value: int) -> None:
        self.seek(value, os.SEEK_SET)

    @property
    def length(self) -> int:
        """Uncompressed size of the entry in bytes."""
        self._check_open()
        if self._size is not None:
            return self._size
        current = self._entry_stream.tell()
        try:
            return self._entry_stream.seek(0, os.SEEK_END)
        finally:
            self._entry_stream.seek(current, os.SEEK_SET)

    # Writing

    def writable(self) -> bool:
        self._check_open()
        return self._entry_stream.writable()

    def write(self, data: Any) -> int:
        self._check_open()
        return self._entry_stream.write(data)

    def truncate(self, size: Optional[int] = None) -> int:
        self._check_open()
        return self._entry_stream.truncate(size)

    def flush(self) -> None:
        if self.closed:
            return
        self._entry_stream.flush()

    # Lifetime

    def close(self) -> None:
        """Close the entry stream, the archive and the container stream.

        Raises:
            StreamCloseError: If any of the closes failed; all were attempted
        """
        if self.closed:
            return

        errors: List[BaseException] = []
        try:
            super().close()
        except Exception as exc:
            errors.append(exc)

        for name, resource in (
            ("entry stream", self._entry_stream),
            ("archive", self._archive),
            ("container stream", self._container_stream),
        ):
            try:
                resource.close()
            except Exception as exc:
                logger.warning(f"Failed to close {name}: {exc}")
                errors.append(exc)

        if errors:
            raise StreamCloseError(errors)
