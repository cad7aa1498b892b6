import pytest

from apkreader.control import (
    Field,
    RecordBuilder,
    parse_number,
    process_index,
    process_pkginfo_line,
    split_index_line,
    split_pkginfo_line,
)
from apkreader.models.package import VOID, AttributeKey, PoolId
from apkreader.pool import ID_EMPTY, ID_NOARCH

from .conftest import SAMPLE_INDEX


def lines(text: str) -> list[bytes]:
    return [line.encode() for line in text.splitlines(keepends=True)]


def build(repo, text: str):
    builder = RecordBuilder(repo)
    builder.open()
    for line in text.splitlines():
        process_pkginfo_line(builder, line)
    record = builder.finish()
    repo.internalize()
    return record


@pytest.mark.parametrize(
    "line, expected",
    [
        ("pkgname = curl", ("pkgname", "curl")),
        ("pkgdesc = a = b", ("pkgdesc", "a = b")),
        ("pkgver = ", ("pkgver", "")),
        ("# pkgname = curl", None),
        ("", None),
        ("pkgname=curl", None),
    ],
)
def test_split_pkginfo_line(line, expected):
    assert split_pkginfo_line(line) == expected


@pytest.mark.parametrize(
    "line, expected",
    [
        ("P:musl", ("P", "musl")),
        ("V:", ("V", "")),
        ("T:a: b", ("T", "a: b")),
        ("P", None),
        ("PP:musl", None),
        ("", None),
    ],
)
def test_split_index_line(line, expected):
    assert split_index_line(line) == expected


@pytest.mark.parametrize("text, value", [("1701947046", 1701947046), (" 42", 42), ("12abc", 12), ("abc", 0)])
def test_parse_number(text, value):
    assert parse_number(text) == value


def test_origin_equal_to_name_is_void(repo):
    record = build(repo, "pkgname = x\norigin = x\n")
    assert repo.lookup(record, AttributeKey.SOURCENAME) is VOID
    assert repo.lookup_str(record, AttributeKey.SOURCENAME) == "x"


def test_origin_different_from_name_is_an_id(repo, pool):
    record = build(repo, "pkgname = x\norigin = y\n")
    value = repo.lookup(record, AttributeKey.SOURCENAME)
    assert isinstance(value, PoolId)
    assert pool.id2str(value) == "y"


def test_missing_origin_defaults_to_void(repo):
    record = build(repo, "pkgname = x\npkgver = 1.0-r0\n")
    assert repo.lookup(record, AttributeKey.SOURCENAME) is VOID


def test_origin_before_name_is_stored_as_id(repo, pool):
    record = build(repo, "origin = x\npkgname = x\n")
    assert pool.id2str(repo.lookup(record, AttributeKey.SOURCENAME)) == "x"


def test_finish_applies_defaults_and_self_provide(repo, pool):
    record = build(repo, "pkgname = lonely\n")
    assert record.version == ID_EMPTY
    assert record.arch == ID_NOARCH
    assert [pool.dep2str(d) for d in record.provides] == ["lonely="]
    assert list(repo) == [record]


def test_self_provide_follows_explicit_provides(repo, pool):
    record = build(repo, "pkgname = sh\npkgver = 1.0\nprovides = cmd:sh=1.0\n")
    assert [pool.dep2str(d) for d in record.provides] == ["cmd:sh=1.0", "sh=1.0"]


def test_fields_map_to_attributes(repo, pool):
    text = (
        "pkgname = curl\npkgver = 8.5.0-r0\npkgdesc = URL tool\nurl = https://curl.se/\n"
        "builddate = 1701947046\npackager = Buildozer\nsize = 253952\narch = x86_64\n"
        "license = curl\nlicense = MIT\nunknown = ignored\n"
    )
    record = build(repo, text)
    attrs = repo.data.attributes(record.handle)
    assert attrs[AttributeKey.SUMMARY] == attrs[AttributeKey.DESCRIPTION] == "URL tool"
    assert attrs[AttributeKey.URL] == "https://curl.se/"
    assert attrs[AttributeKey.BUILDTIME] == 1701947046
    assert attrs[AttributeKey.INSTALLSIZE] == 253952
    assert pool.id2str(attrs[AttributeKey.PACKAGER]) == "Buildozer"
    assert attrs[AttributeKey.LICENSE] == ["curl", "MIT"]
    assert pool.id2str(record.arch) == "x86_64"
    assert len(attrs) == 8


def test_nameless_record_is_discarded(repo, pool):
    builder = RecordBuilder(repo)
    first = builder.open()
    builder.apply(Field.VERSION, "1.0")
    builder.apply(Field.URL, "https://example.org/")
    assert builder.finish() is None
    assert len(repo) == 0

    # the handle is handed out again
    assert builder.open().handle == first.handle
    assert repo.data.attributes(first.handle) == {}


def test_empty_name_counts_as_missing(repo):
    builder = RecordBuilder(repo)
    builder.apply(Field.NAME, "")
    assert builder.finish() is None


def test_process_index(repo, pool):
    records = process_index(repo, lines(SAMPLE_INDEX))
    repo.internalize()
    assert [pool.id2str(r.name) for r in records] == ["musl", "busybox", "busybox-doc"]
    assert list(repo) == records

    musl, busybox, doc = records
    assert pool.id2str(musl.version) == "1.2.4_git20230717-r4"
    assert repo.lookup(musl, AttributeKey.SOURCENAME) is VOID
    assert repo.lookup(musl, AttributeKey.INSTALLSIZE) == 663552
    assert repo.lookup(musl, AttributeKey.BUILDTIME) == 1701199839
    assert repo.lookup(musl, AttributeKey.LICENSE) == ["MIT"]
    assert repo.lookup(musl, AttributeKey.HDRID).type == "sha1"
    assert [pool.dep2str(d) for d in musl.provides] == [
        "so:libc.musl-x86_64.so.1=1",
        "musl=1.2.4_git20230717-r4",
    ]

    assert repo.lookup_str(busybox, AttributeKey.SOURCENAME) == "busybox-src"
    assert repo.lookup(busybox, AttributeKey.HDRID).type == "sha256"
    assert [pool.dep2str(d) for d in busybox.requires] == ["so:libc.musl-x86_64.so.1"]

    assert pool.id2str(doc.arch) == "noarch"
    assert [pool.dep2str(d) for d in doc.supplements] == ["busybox=1.36.1-r15 & docs"]
    # the discarded orphan block's handle was reused
    assert doc.handle == busybox.handle + 1


def test_index_without_trailing_blank_line(repo, pool):
    records = process_index(repo, lines("P:a\nV:1\n\nP:b\nV:2"))
    assert [pool.id2str(r.version) for r in records] == ["1", "2"]


def test_index_ignores_garbage_lines(repo, pool):
    records = process_index(repo, lines("garbage\nP:a\nX:unknown\n\n\n\nQ\n"))
    assert [pool.id2str(r.name) for r in records] == ["a"]


def test_index_unknown_field_alone_is_discarded(repo):
    assert process_index(repo, lines("m:someone\n\nP:a\n")) == repo.records
    assert len(repo) == 1
