"""Package metadata records: ``.PKGINFO`` and ``APKINDEX`` field dispatch.

Both dialects map their keys onto the same ``Field`` tags and are applied by one
``RecordBuilder``, which also owns record defaults and finalization.
"""

import logging
import re
from collections.abc import Iterable
from enum import Enum

from apkreader.checksum import set_hdrid_from_string
from apkreader.deps import DepKind, add_dep, add_deps
from apkreader.models.package import AttributeKey, PackageRecord
from apkreader.pool import ID_EMPTY, ID_NOARCH, ID_NULL, RelFlag
from apkreader.repository import Repository

logger = logging.getLogger(__name__)


class Field(Enum):
    NAME = "name"
    VERSION = "version"
    SUMMARY = "summary"
    URL = "url"
    BUILDTIME = "buildtime"
    INSTALLSIZE = "installsize"
    PACKAGER = "packager"
    ARCH = "arch"
    LICENSE = "license"
    ORIGIN = "origin"
    DEPENDS = "depends"
    PROVIDES = "provides"
    INSTALL_IF = "install_if"
    CHECKSUM = "checksum"


# "key = value" lines of .PKGINFO
PKGINFO_FIELDS = {
    "pkgname": Field.NAME,
    "pkgver": Field.VERSION,
    "pkgdesc": Field.SUMMARY,
    "url": Field.URL,
    "builddate": Field.BUILDTIME,
    "packager": Field.PACKAGER,
    "size": Field.INSTALLSIZE,
    "arch": Field.ARCH,
    "license": Field.LICENSE,
    "origin": Field.ORIGIN,
    "depend": Field.DEPENDS,
    "provides": Field.PROVIDES,
    "install_if": Field.INSTALL_IF,
}

# "K:value" lines of APKINDEX
INDEX_FIELDS = {
    "P": Field.NAME,
    "V": Field.VERSION,
    "T": Field.SUMMARY,
    "U": Field.URL,
    "t": Field.BUILDTIME,
    "I": Field.INSTALLSIZE,
    "A": Field.ARCH,
    "L": Field.LICENSE,
    "o": Field.ORIGIN,
    "D": Field.DEPENDS,
    "p": Field.PROVIDES,
    "i": Field.INSTALL_IF,
    "C": Field.CHECKSUM,
}

_DEP_FIELDS = {
    Field.DEPENDS: DepKind.REQUIRES,
    Field.PROVIDES: DepKind.PROVIDES,
    Field.INSTALL_IF: DepKind.SUPPLEMENTS,
}

_NUMBER_RE = re.compile(r"\s*\+?(\d+)")


def parse_number(text: str) -> int:
    """Leading decimal digits of ``text``, 0 if there are none."""
    match = _NUMBER_RE.match(text)
    return int(match.group(1)) if match else 0


def decode_line(raw: bytes) -> str:
    """Decode a raw metadata line and drop its trailing newline."""
    line = raw.decode("utf-8", errors="replace")
    return line[:-1] if line.endswith("\n") else line


def split_pkginfo_line(line: str) -> tuple[str, str] | None:
    """Split a ``.PKGINFO`` line; comments, blanks and other lines give None."""
    if not line or line.startswith("#"):
        return None
    key, sep, value = line.partition(" = ")
    if not sep:
        return None
    return key, value


def split_index_line(line: str) -> tuple[str, str] | None:
    """Split an ``APKINDEX`` line into its one-letter tag and value."""
    if len(line) < 2 or line[1] != ":":
        return None
    return line[0], line[2:]


class RecordBuilder:
    """Applies metadata fields to one open record at a time."""

    def __init__(self, repo: Repository):
        self.repo = repo
        self.record: PackageRecord | None = None
        self.have_origin = False

    @property
    def is_open(self) -> bool:
        return self.record is not None

    def open(self) -> PackageRecord:
        if self.record is None:
            self.record = self.repo.new_record()
            self.have_origin = False
        return self.record

    def apply(self, field: Field, value: str) -> None:
        pool = self.repo.pool
        data = self.repo.data
        record = self.open()
        handle = record.handle

        match field:
            case Field.NAME:
                record.name = pool.str2id(value)
            case Field.VERSION:
                record.version = pool.str2id(value)
            case Field.SUMMARY:
                data.set_str(handle, AttributeKey.SUMMARY, value)
                data.set_str(handle, AttributeKey.DESCRIPTION, value)
            case Field.URL:
                data.set_str(handle, AttributeKey.URL, value)
            case Field.BUILDTIME:
                data.set_num(handle, AttributeKey.BUILDTIME, parse_number(value))
            case Field.INSTALLSIZE:
                data.set_num(handle, AttributeKey.INSTALLSIZE, parse_number(value))
            case Field.PACKAGER:
                data.set_poolstr(handle, AttributeKey.PACKAGER, value)
            case Field.ARCH:
                record.arch = pool.str2id(value)
            case Field.LICENSE:
                data.add_poolstr_array(handle, AttributeKey.LICENSE, value)
            case Field.ORIGIN:
                # compared against the name known so far, so field order matters
                if record.name != ID_NULL and value == pool.id2str(record.name):
                    data.set_void(handle, AttributeKey.SOURCENAME)
                else:
                    data.set_id(handle, AttributeKey.SOURCENAME, pool.str2id(value))
                self.have_origin = True
            case Field.DEPENDS | Field.PROVIDES | Field.INSTALL_IF:
                add_deps(self.repo, record, _DEP_FIELDS[field], value)
            case Field.CHECKSUM:
                set_hdrid_from_string(data, handle, value)

    def abort(self) -> None:
        """Discard the open record, if any."""
        record, self.record = self.record, None
        if record is not None:
            self.repo.discard(record)

    def finish(self) -> PackageRecord | None:
        """Close the open record.

        A record without a name is discarded and None returned; otherwise
        defaults are filled in, the record provides itself, and it is added to
        the repository.
        """
        record, self.record = self.record, None
        if record is None:
            return None
        if record.name in (ID_NULL, ID_EMPTY):
            logger.debug(f"Discarding record {record.handle} without a package name")
            self.repo.discard(record)
            return None

        pool = self.repo.pool
        if not record.arch:
            record.arch = ID_NOARCH
        if not record.version:
            record.version = ID_EMPTY
        add_dep(record.provides, pool.rel2id(record.name, record.version, RelFlag.EQ))
        if not self.have_origin:
            self.repo.data.set_void(record.handle, AttributeKey.SOURCENAME)

        self.repo.add_record(record)
        logger.debug(f"Added {pool.id2str(record.name)}-{pool.id2str(record.version)}")
        return record


def process_pkginfo_line(builder: RecordBuilder, line: str) -> None:
    if (pair := split_pkginfo_line(line)) is None:
        return
    key, value = pair
    if (field := PKGINFO_FIELDS.get(key)) is not None:
        builder.apply(field, value)


def process_index(repo: Repository, lines: Iterable[bytes]) -> list[PackageRecord]:
    """Parse blank-line separated ``APKINDEX`` blocks into records.

    Blocks without a ``P:`` line are dropped; nothing here aborts the index.
    """
    builder = RecordBuilder(repo)
    added: list[PackageRecord] = []
    try:
        for raw in lines:
            if raw == b"\n":
                if builder.is_open and (record := builder.finish()) is not None:
                    added.append(record)
                continue

            if (pair := split_index_line(decode_line(raw))) is None:
                continue
            tag, value = pair
            builder.open()
            if (field := INDEX_FIELDS.get(tag)) is not None:
                builder.apply(field, value)
    except BaseException:
        # a block cut short by a read error never joins the repository
        builder.abort()
        raise

    if builder.is_open and (record := builder.finish()) is not None:
        added.append(record)
    return added
