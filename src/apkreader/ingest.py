"""Entry points: add a package archive or a repository index to a repository."""

import gzip
import logging
import tarfile
import zlib
from enum import IntFlag
from os import PathLike
from pathlib import Path
from typing import BinaryIO

from apkreader.checksum import new_digest
from apkreader.constants import GZIP_MAGIC, INDEX_NAME, MAX_PKGINFO_SIZE, PKGINFO_NAME
from apkreader.control import RecordBuilder, decode_line, process_index, process_pkginfo_line
from apkreader.errors import (
    ApkDecodeError,
    ApkError,
    ApkIOError,
    MissingNameError,
    OversizedMetadataError,
    TruncatedStreamError,
)
from apkreader.models.package import AttributeKey, ChecksumType, PackageRecord
from apkreader.repository import Repository
from apkreader.zstream import ApkStream, SegmentState

logger = logging.getLogger(__name__)


class AddFlags(IntFlag):
    """Options for the ingestion entry points."""

    WITH_PKGID = 1  # MD5 over the .PKGINFO text
    WITH_HDRID = 2  # SHA-1 over the compressed control segment
    NO_LOCATION = 4
    NO_INTERNALIZE = 8
    USE_ROOTDIR = 16
    ADD_INDEX = 32  # the stream is a bare APKINDEX, not a tar container


def _open_file(repo: Repository, path: str | PathLike, flags: AddFlags) -> BinaryIO:
    real_path = repo.pool.resolve_path(path) if flags & AddFlags.USE_ROOTDIR else Path(path)
    try:
        return open(real_path, "rb")
    except OSError as e:
        raise ApkIOError(e.strerror or str(e), path) from e


def _iter_lines(fileobj: BinaryIO):
    return iter(fileobj.readline, b"")


def _read_package(repo: Repository, path: str | PathLike, flags: AddFlags) -> PackageRecord:
    builder = RecordBuilder(repo)
    pkgid = None
    hdrid = new_digest(ChecksumType.SHA1) if flags & AddFlags.WITH_HDRID else None

    source = _open_file(repo, path, flags)
    try:
        stream = ApkStream(source, name=str(path))
    except Exception:
        source.close()
        raise

    with stream:
        try:
            # the first segment holds the signatures
            stream.read()
            if stream.reset(observer=hdrid.update if hdrid else None) is not SegmentState.MORE_DATA:
                raise TruncatedStreamError("unexpected EOF", path)

            try:
                with tarfile.open(fileobj=stream, mode="r|") as tar:
                    for member in tar:
                        if not member.isreg() or member.name != PKGINFO_NAME:
                            continue
                        if member.size > MAX_PKGINFO_SIZE:
                            raise OversizedMetadataError(f"oversized {PKGINFO_NAME}", path)

                        builder.open()
                        if flags & AddFlags.WITH_PKGID:
                            pkgid = new_digest(ChecksumType.MD5)
                        for raw in _iter_lines(tar.extractfile(member)):
                            if pkgid is not None:
                                pkgid.update(raw)
                            process_pkginfo_line(builder, decode_line(raw))
                        break
            except tarfile.TarError as e:
                raise ApkDecodeError(f"corrupt control segment: {e}", path) from e

            # consume the rest of the control segment so the header checksum covers all of it
            stream.read()
        except ApkError:
            builder.abort()
            raise

    if not builder.is_open:
        raise MissingNameError(f"no {PKGINFO_NAME} in control segment", path)
    record = builder.finish()
    if record is None:
        raise MissingNameError("package has no name", path)

    data = repo.data
    if pkgid is not None:
        data.set_bin_checksum(record.handle, AttributeKey.PKGID, ChecksumType.MD5, pkgid.digest())
    if hdrid is not None:
        data.set_bin_checksum(record.handle, AttributeKey.HDRID, ChecksumType.SHA1, hdrid.digest())
    if not flags & AddFlags.NO_LOCATION:
        data.set_location(record.handle, str(path))
    return record


def ingest_package_archive(
    repo: Repository,
    path: str | PathLike,
    flags: AddFlags = AddFlags(0),
) -> PackageRecord:
    """Add the package described by an ``.apk`` file.

    Args:
        repo: Repository to add the package to
        path: Path of the package archive
        flags: ``WITH_PKGID``, ``WITH_HDRID``, ``NO_LOCATION``, ``NO_INTERNALIZE``, ``USE_ROOTDIR``

    Returns:
        The new package record

    Raises:
        ApkIOError: the file cannot be opened or read
        ApkDecodeError: corrupt compressed data or tar framing (TruncatedStreamError if cut short)
        StructuralError: oversized ``.PKGINFO`` or a package without a name
    """
    try:
        record = _read_package(repo, path, flags)
    except ApkError as e:
        repo.pool.report(e.path, e.message)
        raise
    finally:
        if not flags & AddFlags.NO_INTERNALIZE:
            repo.internalize()
    logger.info(f"Added package {repo.pool.id2str(record.name)} from {path}")
    return record


def ingest_repository_index(
    repo: Repository,
    stream: BinaryIO,
    flags: AddFlags = AddFlags(0),
) -> list[PackageRecord]:
    """Add every package listed in a repository index.

    Args:
        repo: Repository to add the packages to
        stream: Readable binary stream, already decompressed
        flags: ``ADD_INDEX`` if the stream is a bare ``APKINDEX``; otherwise it is read
            as a tar archive and every ``APKINDEX`` member is parsed. ``NO_INTERNALIZE``
            leaves the attribute batch pending.

    Returns:
        The records added, in index order
    """
    name = getattr(stream, "name", None)
    records: list[PackageRecord] = []
    try:
        if flags & AddFlags.ADD_INDEX:
            records += process_index(repo, _iter_lines(stream))
        else:
            with tarfile.open(fileobj=stream, mode="r|") as tar:
                for member in tar:
                    if not member.isreg() or member.name != INDEX_NAME:
                        continue
                    records += process_index(repo, _iter_lines(tar.extractfile(member)))
    except tarfile.TarError as e:
        raise ApkDecodeError(f"corrupt index archive: {e}", name) from e
    except EOFError as e:
        raise TruncatedStreamError(str(e), name) from e
    except (gzip.BadGzipFile, zlib.error) as e:
        raise ApkDecodeError(str(e), name) from e
    except OSError as e:
        raise ApkIOError(str(e), name) from e
    finally:
        if not flags & AddFlags.NO_INTERNALIZE:
            repo.internalize()

    logger.info(f"Added {len(records)} packages from index {name or '<stream>'}")
    return records


def open_index(path: str | PathLike) -> BinaryIO:
    """Open an index file, decompressing ``APKINDEX.tar.gz`` transparently."""
    try:
        with open(path, "rb") as f:
            magic = f.read(2)
        if magic == GZIP_MAGIC:
            return gzip.open(path, "rb")
        return open(path, "rb")
    except OSError as e:
        raise ApkIOError(e.strerror or str(e), path) from e


def ingest_index_file(
    repo: Repository,
    path: str | PathLike,
    flags: AddFlags | None = None,
) -> list[PackageRecord]:
    """Ingest an index from disk; without flags, plain non-tar files are read as a bare index."""
    if flags is None:
        flags = AddFlags(0)
        try:
            with open(path, "rb") as f:
                is_plain = f.read(2) != GZIP_MAGIC
        except OSError as e:
            raise ApkIOError(e.strerror or str(e), path) from e
        if is_plain and not tarfile.is_tarfile(path):
            flags |= AddFlags.ADD_INDEX

    with open_index(path) as stream:
        try:
            return ingest_repository_index(repo, stream, flags)
        except ApkError as e:
            e.path = e.path or path
            repo.pool.report(e.path, e.message)
            raise
