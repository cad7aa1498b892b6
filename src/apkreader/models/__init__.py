"""Expose record and ORM models."""

import sqlmodel as sm

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_`%(constraint_name)s`",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# must be in place before the table models below are declared
sm.SQLModel.metadata.naming_convention = NAMING_CONVENTION

from .package import VOID, AttributeKey, Checksum, ChecksumType, PackageRecord, PoolId  # noqa: E402
from .packages import StoredPackage  # noqa: E402
from .repository import StoredRepository  # noqa: E402

__all__ = [
    "NAMING_CONVENTION",
    "VOID",
    "AttributeKey",
    "Checksum",
    "ChecksumType",
    "PackageRecord",
    "PoolId",
    "StoredPackage",
    "StoredRepository",
]
