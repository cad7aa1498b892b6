"""apkreader: Alpine package and APKINDEX metadata reader."""

import logging

from rich.logging import RichHandler

from .errors import (
    ApkDecodeError,
    ApkError,
    ApkIOError,
    MissingNameError,
    OversizedMetadataError,
    StructuralError,
    TruncatedStreamError,
)
from .ingest import AddFlags, ingest_index_file, ingest_package_archive, ingest_repository_index, open_index
from .pool import Pool, RelFlag
from .repository import Repository

logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True)],
)
logging.getLogger("httpx").setLevel(logging.WARNING)

__all__ = [
    "AddFlags",
    "ApkDecodeError",
    "ApkError",
    "ApkIOError",
    "MissingNameError",
    "OversizedMetadataError",
    "Pool",
    "RelFlag",
    "Repository",
    "StructuralError",
    "TruncatedStreamError",
    "ingest_index_file",
    "ingest_package_archive",
    "ingest_repository_index",
    "open_index",
]
