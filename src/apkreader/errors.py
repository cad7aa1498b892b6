"""Exceptions raised while ingesting APK metadata."""

from os import PathLike


class ApkError(Exception):
    """Base class for ingestion failures, carrying the file they relate to."""

    def __init__(self, message: str, path: str | PathLike | None = None):
        super().__init__(message)
        self.message = message
        self.path = path

    def __str__(self) -> str:
        if self.path is None:
            return self.message
        return f"{self.path}: {self.message}"


class ApkIOError(ApkError):
    """The file could not be opened or read."""


class ApkDecodeError(ApkError):
    """Compressed data or archive framing is corrupt."""


class TruncatedStreamError(ApkDecodeError):
    """The source ended before the compressed stream did."""


class StructuralError(ApkError):
    """The metadata decoded fine but cannot form a package."""


class OversizedMetadataError(StructuralError):
    pass


class MissingNameError(StructuralError):
    pass
