import gzip
import io
import tarfile
from pathlib import Path
from typing import NamedTuple

import pytest

from apkreader.pool import Pool
from apkreader.repository import Repository

SAMPLE_PKGINFO = """\
# Generated by abuild 3.12.0
# using fakeroot version 1.32.1
pkgname = curl
pkgver = 8.5.0-r0
pkgdesc = URL retrival utility and library
url = https://curl.se/
builddate = 1701947046
packager = Buildozer <alpine-devel@lists.alpinelinux.org>
size = 253952
arch = x86_64
origin = curl
commit = 1c0fb3ad5c1a0b0e6d8b5c0d2b2c0b0e6d8b5c0d
maintainer = Natanael Copa <ncopa@alpinelinux.org>
license = curl
license = MIT
depend = ca-certificates>=20230506 !curl-minimal
depend = so:libc.musl-x86_64.so.1 so:libcurl.so.4
provides = cmd:curl=8.5.0-r0
install_if = curl-doc-base docs
datahash = 9d5f8b3f5c0e6f8e2a7c1d3e4b5a6978
"""

SAMPLE_INDEX = """\
C:Q1hBFTqCXuOwuBjHLtnl3LiYPtd9U=
P:musl
V:1.2.4_git20230717-r4
A:x86_64
S:407369
I:663552
T:the musl c library (libc) implementation
U:https://musl.libc.org/
L:MIT
o:musl
m:Natanael Copa <ncopa@alpinelinux.org>
t:1701199839
c:5d35b8c3af5d8ab2e1fc0e2a5a8c87f1b2e2d6c8
p:so:libc.musl-x86_64.so.1=1

C:Q2YFTb+ZtBgKdoUHyE4C2Xi2mJzjjnBBLV4GgVqHfOCNA=
P:busybox
V:1.36.1-r15
A:x86_64
I:946176
T:Size optimized toolbox of many common UNIX utilities
U:https://busybox.net/
L:GPL-2.0-only
o:busybox-src
t:1701378208
D:so:libc.musl-x86_64.so.1
p:cmd:busybox=1.36.1-r15 cmd:sh=1.36.1-r15

V:9.9-r9
T:orphan block without a name

P:busybox-doc
V:1.36.1-r15
A:noarch
o:busybox
i:docs busybox=1.36.1-r15
"""


class BuiltApk(NamedTuple):
    path: Path
    control_segment: bytes


def make_tar(files: dict[str, bytes | None], end_marker: bool = True) -> bytes:
    """Tar up ``files``; a None value makes a directory entry.

    Without ``end_marker`` the archive stops right after the last member, the
    way apk writes its signature and control segments.
    """
    buf = io.BytesIO()
    tar = tarfile.open(fileobj=buf, mode="w", format=tarfile.PAX_FORMAT)
    for name, content in files.items():
        info = tarfile.TarInfo(name)
        info.mtime = 0
        if content is None:
            info.type = tarfile.DIRTYPE
            tar.addfile(info)
        else:
            info.size = len(content)
            tar.addfile(info, io.BytesIO(content))
    if end_marker:
        tar.close()
        return buf.getvalue()
    data = buf.getvalue()[: tar.offset]
    tar.close()
    return data


def gz(data: bytes) -> bytes:
    return gzip.compress(data, mtime=0)


def make_apk_bytes(
    pkginfo: str | bytes,
    before: dict[str, bytes | None] | None = None,
    after: dict[str, bytes | None] | None = None,
    signature: bool = True,
) -> tuple[bytes, bytes]:
    """Build a package archive; returns (file bytes, control segment)."""
    if isinstance(pkginfo, str):
        pkginfo = pkginfo.encode()
    control_files = {**(before or {}), ".PKGINFO": pkginfo, **(after or {})}
    control = gz(make_tar(control_files, end_marker=False))
    segments = []
    if signature:
        segments.append(gz(make_tar({".SIGN.RSA.alpine-devel.rsa.pub": b"\x00" * 256}, end_marker=False)))
    segments.append(control)
    segments.append(gz(make_tar({"usr/": None, "usr/bin/curl": b"\x7fELF" + b"\x00" * 4000})))
    return b"".join(segments), control


def make_index_archive(index: str | bytes, description: bytes = b"v3.19.0-1-g0123456789") -> bytes:
    if isinstance(index, str):
        index = index.encode()
    signature = gz(make_tar({".SIGN.RSA.alpine-devel.rsa.pub": b"\x00" * 256}, end_marker=False))
    body = gz(make_tar({"DESCRIPTION": description, "APKINDEX": index}))
    return signature + body


@pytest.fixture
def pool():
    return Pool()


@pytest.fixture
def repo(pool):
    return Repository(pool, "test")


@pytest.fixture
def apk_factory(tmp_path):
    def make(pkginfo: str | bytes = SAMPLE_PKGINFO, name: str = "curl-8.5.0-r0.apk", **kwargs) -> BuiltApk:
        data, control = make_apk_bytes(pkginfo, **kwargs)
        path = tmp_path / name
        path.write_bytes(data)
        return BuiltApk(path, control)

    return make


@pytest.fixture
def index_archive(tmp_path):
    path = tmp_path / "APKINDEX.tar.gz"
    path.write_bytes(make_index_archive(SAMPLE_INDEX))
    return path
