"""In-memory package record and attribute value models."""

from enum import Enum, StrEnum

from pydantic import BaseModel, Field

from apkreader.pool import ID_NULL


class ChecksumType(StrEnum):
    MD5 = "md5"
    SHA1 = "sha1"
    SHA256 = "sha256"

    @property
    def digest_size(self) -> int:
        return {"md5": 16, "sha1": 20, "sha256": 32}[self.value]


class AttributeKey(StrEnum):
    SUMMARY = "summary"
    DESCRIPTION = "description"
    URL = "url"
    BUILDTIME = "buildtime"
    INSTALLSIZE = "installsize"
    PACKAGER = "packager"
    LICENSE = "license"
    SOURCENAME = "sourcename"
    PKGID = "pkgid"
    HDRID = "hdrid"
    LOCATION = "location"


class _Void(Enum):
    VOID = "void"

    def __repr__(self) -> str:
        return "VOID"


# attribute present, value implied (e.g. source name equal to the package name)
VOID = _Void.VOID


class PoolId(int):
    """An attribute value that refers to an interned pool string."""

    def __repr__(self) -> str:
        return f"PoolId({int(self)})"


class Checksum(BaseModel, frozen=True):
    """A binary digest together with its algorithm."""

    type: ChecksumType
    digest: bytes

    @property
    def hex(self) -> str:
        return self.digest.hex()


class PackageRecord(BaseModel):
    """A single package (solvable) owned by a repository.

    All name-like fields are pool ids; 0 means unset.
    """

    handle: int
    name: int = ID_NULL
    version: int = ID_NULL
    arch: int = ID_NULL
    provides: list[int] = Field(default_factory=list)
    requires: list[int] = Field(default_factory=list)
    conflicts: list[int] = Field(default_factory=list)
    supplements: list[int] = Field(default_factory=list)
