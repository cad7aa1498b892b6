"""Stored package rows."""

from typing import TYPE_CHECKING

import sqlmodel as sm
from pydantic import ByteSize, computed_field
from sqlmodel import JSON, BigInteger, Field, Index, Relationship

if TYPE_CHECKING:
    from apkreader.models.repository import StoredRepository


class StoredPackage(sm.SQLModel, table=True):
    """Persisted metadata for a single ingested package."""

    __tablename__ = "package"
    __table_args__ = (Index("ix_package_repository_name_version", "repository_id", "name", "version"),)

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    version: str = Field(index=True)
    arch: str
    summary: str | None = None
    description: str | None = None
    url: str | None = None
    build_time: int | None = Field(default=None, sa_type=BigInteger)
    install_size: int | None = Field(default=None, sa_type=BigInteger)
    packager: str | None = None
    source_name: str | None = Field(default=None, index=True)
    licenses: list[str] = Field(sa_type=JSON, default_factory=list)
    provides: list[str] = Field(sa_type=JSON, default_factory=list)
    requires: list[str] = Field(sa_type=JSON, default_factory=list)
    conflicts: list[str] = Field(sa_type=JSON, default_factory=list)
    supplements: list[str] = Field(sa_type=JSON, default_factory=list)
    pkgid: str | None = None
    pkgid_type: str | None = None
    hdrid: str | None = None
    hdrid_type: str | None = None
    location: str | None = None

    repository_id: int = Field(foreign_key="repository.id", ondelete="CASCADE")
    repository: "StoredRepository" = Relationship(
        back_populates="packages",
        sa_relationship_kwargs={"lazy": "selectin"},
    )

    @computed_field
    @property
    def install_size_str(self) -> str:
        """Installed size formatted as a human-readable string."""
        if self.install_size is None:
            return "-"
        return ByteSize(self.install_size).human_readable()
