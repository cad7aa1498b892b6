"""Package checksums: digest accumulators and the ``Q1``/``Q2`` checksum strings."""

import base64
import hashlib
import logging

from apkreader.models.package import AttributeKey, Checksum, ChecksumType
from apkreader.repository import Repodata

logger = logging.getLogger(__name__)


def _b64_value(char: str) -> int | None:
    if "A" <= char <= "Z":
        return ord(char) - ord("A")
    if "a" <= char <= "z":
        return ord(char) - ord("a") + 26
    if "0" <= char <= "9":
        return ord(char) - ord("0") + 52
    if char == "+":
        return 62
    if char == "/":
        return 63
    return None


def decode_hdrid(token: str) -> Checksum | None:
    """Decode an index ``C:`` checksum string into a binary digest.

    ``Q1`` followed by 28 base64 characters is a SHA-1 digest, ``Q2`` followed
    by 44 characters a SHA-256 one. The pad character ``=`` is only accepted at
    body index 27 (``Q1``) or 43 (``Q2``), and the group that ends there yields
    two bytes instead of three. Returns None for anything that does not decode.
    """
    length = len(token)
    if not (
        (length in (30, 46) and token.startswith("Q1"))
        or (length == 46 and token.startswith("Q2"))
    ):
        return None

    pad_pos = 43 if token[1] == "2" else 27
    body = token[2:]
    out = bytearray()
    acc = 0
    for i, char in enumerate(body):
        value = _b64_value(char)
        if value is None:
            if char == "=" and i == pad_pos:
                value = 0
            else:
                return None
        acc = acc << 6 | value
        if i & 3 == 3:
            out.append(acc >> 16 & 0xFF)
            out.append(acc >> 8 & 0xFF)
            if i != pad_pos:
                out.append(acc & 0xFF)
            acc = 0

    checksum_type = ChecksumType.SHA1 if len(body) == 28 else ChecksumType.SHA256
    return Checksum(type=checksum_type, digest=bytes(out[: checksum_type.digest_size]))


def encode_hdrid(checksum: Checksum) -> str:
    """Inverse of ``decode_hdrid`` for SHA-1 and SHA-256 digests."""
    prefix = {ChecksumType.SHA1: "Q1", ChecksumType.SHA256: "Q2"}.get(checksum.type)
    if prefix is None:
        raise ValueError(f"no checksum string form for {checksum.type}")
    return prefix + base64.b64encode(checksum.digest).decode("ascii")


def set_hdrid_from_string(data: Repodata, handle: int, token: str) -> bool:
    """Store a decoded header checksum; malformed tokens are skipped."""
    checksum = decode_hdrid(token)
    if checksum is None:
        logger.debug(f"Ignoring malformed checksum string {token!r}")
        return False
    data.set_bin_checksum(handle, AttributeKey.HDRID, checksum.type, checksum.digest)
    return True


def new_digest(checksum_type: ChecksumType):
    return hashlib.new(checksum_type.value)
