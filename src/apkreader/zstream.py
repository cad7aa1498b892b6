"""Transparent gzip decompression across concatenated archive segments.

An ``.apk`` file is several independently gzip-compressed segments written back
to back (signature, control, data). ``ApkStream`` inflates one segment at a time,
reports end-of-file at each segment boundary, and moves onto the next segment
with ``reset()`` without re-opening the file. An optional observer receives the
raw compressed bytes as they are consumed, so a digest can be computed over the
compressed form of exactly one segment.
"""

import logging
import zlib
from collections.abc import Callable
from enum import Enum
from typing import BinaryIO

from apkreader.constants import READ_CHUNK_SIZE
from apkreader.errors import ApkDecodeError, ApkIOError, TruncatedStreamError

logger = logging.getLogger(__name__)

Observer = Callable[[bytes], object]

# 15 bit window, +32 to auto-detect a gzip or zlib header
_WBITS = 15 + 32


class SegmentState(Enum):
    MORE_DATA = "more"
    END_OF_SOURCE = "end"


class ApkStream:
    """Read-only file object over the current compressed segment of ``source``."""

    def __init__(self, source: BinaryIO, observer: Observer | None = None, name: str | None = None):
        self.name = name if name is not None else getattr(source, "name", None)
        self.observer = observer
        self.eof = False
        self.closed = False
        self._source = source
        self._pending = b""
        try:
            self._inflater = zlib.decompressobj(_WBITS)
        except zlib.error as e:
            raise ApkIOError(f"cannot initialize decompressor: {e}", self.name) from e

    @classmethod
    def open(cls, source: BinaryIO, observer: Observer | None = None) -> "ApkStream":
        return cls(source, observer=observer)

    def __enter__(self) -> "ApkStream":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def readable(self) -> bool:
        return True

    def _fill(self) -> bool:
        """Pull a chunk of raw input; returns False at end of source."""
        try:
            chunk = self._source.read(READ_CHUNK_SIZE)
        except OSError as e:
            raise ApkIOError(f"read failed: {e}", self.name) from e
        self._pending = chunk
        return bool(chunk)

    def read(self, size: int = -1) -> bytes:
        """Inflate up to ``size`` bytes of the current segment (all of it if negative).

        Returns fewer bytes than asked for only at the end of the segment, and
        ``b""`` for every call after that until ``reset()``.
        """
        if self.closed:
            raise ValueError("I/O operation on closed ApkStream")
        if self.eof or size == 0:
            return b""

        out = bytearray()
        while True:
            at_eof = False
            if not self._pending:
                at_eof = not self._fill()

            want = size - len(out) if size > 0 else 0
            raw = self._pending
            try:
                data = self._inflater.decompress(raw, want)
            except zlib.error as e:
                raise ApkDecodeError(f"corrupt compressed data: {e}", self.name) from e

            if self._inflater.eof:
                self._pending = self._inflater.unused_data
            else:
                self._pending = self._inflater.unconsumed_tail

            consumed = len(raw) - len(self._pending)
            if consumed and self.observer is not None:
                self.observer(raw[:consumed])

            out += data
            if self._inflater.eof:
                self.eof = True
                return bytes(out)
            if size > 0 and len(out) >= size:
                return bytes(out)
            if at_eof:
                raise TruncatedStreamError("unexpected end of compressed stream", self.name)

    def reset(self, observer: Observer | None = None) -> SegmentState:
        """Move onto the next compressed segment of the source.

        Already buffered input is kept. Returns ``END_OF_SOURCE`` if the source
        holds no further bytes at all.
        """
        self.eof = False
        self.observer = observer
        if not self._pending and not self._fill():
            return SegmentState.END_OF_SOURCE
        self._inflater = zlib.decompressobj(_WBITS)
        return SegmentState.MORE_DATA

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._inflater = None
        self._pending = b""
        self._source.close()
