import datetime
import logging

from dateutil.parser import parse as parse_date

from apkreader.models.package import ChecksumType

logger = logging.getLogger(__name__)


def try_parse_date(date_str: str | None) -> datetime.datetime | None:
    """Try to parse a date string into a timestamp.

    Args:
        date_str: The date string to parse (e.g., from HTTP Last-Modified header)

    Returns:
        The parsed timestamp, or None if parsing failed or date_str is None
    """

    try:
        return parse_date(date_str) if date_str else None
    except Exception as e:
        logger.debug(f"Failed to parse date '{date_str}': {e}")
        return None


def format_build_time(build_time: int | None) -> str:
    """Render a ``builddate``/``t:`` epoch as UTC, ``-`` if unknown."""
    if not build_time:
        return "-"
    try:
        stamp = datetime.datetime.fromtimestamp(build_time, tz=datetime.UTC)
    except (OverflowError, OSError, ValueError) as e:
        logger.debug(f"Build time {build_time} out of range: {e}")
        return str(build_time)
    return stamp.strftime("%Y-%m-%d %H:%M:%S")


def format_checksum(checksum_type: ChecksumType, digest: bytes) -> str:
    return f"{checksum_type.value}:{digest.hex()}"
