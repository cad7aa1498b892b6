"""Downloading APKINDEX files from Alpine mirrors."""

import logging
from contextlib import AsyncExitStack
from enum import Enum
from os import utime
from pathlib import Path
from urllib.parse import urlparse

import httpx

from apkreader.constants import ALPINE_MIRROR, GZIP_MAGIC, INDEXES_DIR
from apkreader.utils import try_parse_date

logger = logging.getLogger(__name__)

INDEX_ARCHIVE_NAME = "APKINDEX.tar.gz"


def url_to_local_path(url: str, base_dir: Path = INDEXES_DIR) -> Path:
    """Convert a mirror URL to a local file path that mirrors the source structure.

    Args:
        url: The full URL to a file (e.g., https://dl-cdn.alpinelinux.org/alpine/v3.20/main/x86_64/APKINDEX.tar.gz)
        base_dir: Directory the mirror structure is rebuilt under

    Returns:
        Path under base_dir (e.g., dl-cdn.alpinelinux.org/alpine/v3.20/main/x86_64/APKINDEX.tar.gz)

    Examples:
        >>> url_to_local_path("https://dl-cdn.alpinelinux.org/alpine/edge/main/x86_64/APKINDEX.tar.gz", Path("idx"))
        PosixPath('idx/dl-cdn.alpinelinux.org/alpine/edge/main/x86_64/APKINDEX.tar.gz')
    """
    parsed = urlparse(url)
    # Combine netloc (domain) and path, strip leading slash
    local_path = Path(parsed.netloc) / parsed.path.lstrip("/")
    return base_dir / local_path


def release_path(release: str) -> str:
    """Directory name of a release on the mirror: ``3.20`` -> ``v3.20``, ``edge`` stays."""
    if release == "edge" or release.startswith("v"):
        return release
    return f"v{release}"


def build_index_url(
    release: str,
    branch: str,
    arch: str,
    mirror: str = ALPINE_MIRROR,
) -> str:
    """Construct the APKINDEX.tar.gz URL for a release/branch/architecture."""
    return f"{mirror.rstrip('/')}/{release_path(release)}/{branch}/{arch}/{INDEX_ARCHIVE_NAME}"


class SkipMode(str, Enum):
    """File download skip modes.
    FAST: Skip download if local file exists.
    CHECK: Check Last-Modified and Content-Length headers to decide.
    NONE: Always download.
    """

    FAST = "fast"
    CHECK = "check"
    NONE = "none"


def is_index_archive(data: bytes) -> bool:
    """``APKINDEX.tar.gz`` files, like every apk archive, start with a gzip member."""
    return data[:2] == GZIP_MAGIC


def _have_local_copy(output_path: Path) -> bool:
    if not output_path.is_file():
        return False
    with output_path.open("rb") as f:
        return is_index_archive(f.read(2))


async def _remote_unchanged(client: httpx.AsyncClient, url: str, output_path: Path) -> bool:
    """Compare ``Last-Modified`` (or, failing that, ``Content-Length``) with the local copy."""
    try:
        response = await client.head(url)
        response.raise_for_status()
    except Exception as e:
        logger.warning(f"Unable to check remote mtime or size for {url}: {e}")
        return False

    local = output_path.stat()
    if last_modified := try_parse_date(response.headers.get("last-modified")):
        # allow a second for fs granularity
        return last_modified.timestamp() <= local.st_mtime + 1
    if remote_size := response.headers.get("content-length"):
        return int(remote_size) == local.st_size
    return False


async def download_file(
    url: str,
    output_path: Path,
    skip_mode: SkipMode = SkipMode.CHECK,
    client: httpx.AsyncClient | None = None,
) -> bool:
    """Download an index archive from a URL to a local path.

    The body is written to ``<name>.part`` and only moved over ``output_path``
    once it looks like a gzip archive, so a failed or bogus download never
    replaces a good local index. A local file that is not a gzip archive does
    not count as an existing copy.

    Args:
        url: The URL to download from
        output_path: Where to save the downloaded file
        skip_mode: The mode for skipping downloads if the file exists
        client: Client to use; a short-lived one is created if omitted

    Returns:
        True if the local file is usable, False if the download failed
    """
    try:
        existing = _have_local_copy(output_path)
        if existing and skip_mode == SkipMode.FAST:
            logger.debug(f"Skipping download, index already exists: {output_path}")
            return True

        async with AsyncExitStack() as stack:
            if client is None:
                client = await stack.enter_async_context(httpx.AsyncClient(follow_redirects=True, timeout=30.0))

            if existing and skip_mode == SkipMode.CHECK and await _remote_unchanged(client, url, output_path):
                logger.debug(f"Skipping download, local index is current: {output_path}")
                return True

            response = await client.get(url)
            response.raise_for_status()

        if not is_index_archive(response.content):
            logger.warning(f"Refusing to save {url}: response is not a gzip archive")
            return False

        output_path.parent.mkdir(parents=True, exist_ok=True)
        part_path = output_path.with_name(output_path.name + ".part")
        part_path.write_bytes(response.content)
        if remote_date := try_parse_date(response.headers.get("last-modified")):
            remote_ts = remote_date.timestamp()
            utime(part_path, (remote_ts, remote_ts))
        part_path.replace(output_path)

        logger.debug(f"Downloaded {url} to {output_path}")
        return True

    except httpx.HTTPStatusError as e:
        msg = f"Failed to download {url}: {e}"
        if e.response.status_code == 404:
            logger.debug(msg)
        else:
            logger.warning(msg)
        return False
    except Exception as e:
        logger.exception(f"Unexpected error downloading {url}: {e}")
        return False


async def download_index(
    release: str,
    branch: str,
    arch: str,
    mirror: str = ALPINE_MIRROR,
    skip_mode: SkipMode = SkipMode.CHECK,
    base_dir: Path = INDEXES_DIR,
    client: httpx.AsyncClient | None = None,
) -> tuple[str, Path] | None:
    """Download APKINDEX.tar.gz for the given release/branch/architecture.

    Returns:
        Tuple of (url, local_path), or None if the download failed
    """
    index_url = build_index_url(release, branch, arch, mirror=mirror)
    local_path = url_to_local_path(index_url, base_dir)
    success = await download_file(index_url, local_path, skip_mode=skip_mode, client=client)
    if not success:
        return None
    logger.info(f"Fetched {release}/{branch}/{arch} index to {local_path}")
    return index_url, local_path
