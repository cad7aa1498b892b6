"""Repositories of package records and their attribute store."""

import logging
from collections.abc import Iterator
from typing import Any

from apkreader.models.package import VOID, AttributeKey, Checksum, ChecksumType, PackageRecord, PoolId
from apkreader.pool import Pool

logger = logging.getLogger(__name__)

U64_MAX = (1 << 64) - 1


class Repodata:
    """Sparse (handle, key) -> value attribute store.

    Writes land in a pending batch; ``internalize()`` commits the batch so that
    ``lookup()`` and ``attributes()`` can see it.
    """

    def __init__(self, pool: Pool):
        self.pool = pool
        self._pending: dict[int, dict[AttributeKey, Any]] = {}
        self._attrs: dict[int, dict[AttributeKey, Any]] = {}

    def _slot(self, handle: int) -> dict[AttributeKey, Any]:
        return self._pending.setdefault(handle, {})

    def set_str(self, handle: int, key: AttributeKey, value: str) -> None:
        self._slot(handle)[key] = value

    def set_num(self, handle: int, key: AttributeKey, value: int) -> None:
        self._slot(handle)[key] = min(max(value, 0), U64_MAX)

    def set_id(self, handle: int, key: AttributeKey, id_: int) -> None:
        self._slot(handle)[key] = PoolId(id_)

    def set_poolstr(self, handle: int, key: AttributeKey, value: str) -> None:
        self.set_id(handle, key, self.pool.str2id(value))

    def set_void(self, handle: int, key: AttributeKey) -> None:
        self._slot(handle)[key] = VOID

    def add_poolstr_array(self, handle: int, key: AttributeKey, value: str) -> None:
        slot = self._slot(handle)
        if key not in slot:
            # keep appending to what an earlier batch already committed
            slot[key] = list(self._attrs.get(handle, {}).get(key, []))
        slot[key].append(value)

    def set_bin_checksum(
        self,
        handle: int,
        key: AttributeKey,
        checksum_type: ChecksumType,
        digest: bytes,
    ) -> None:
        digest = bytes(digest[: checksum_type.digest_size])
        self._slot(handle)[key] = Checksum(type=checksum_type, digest=digest)

    def set_location(self, handle: int, location: str) -> None:
        self.set_str(handle, AttributeKey.LOCATION, location)

    def drop(self, handle: int) -> None:
        """Forget everything written for a handle."""
        self._pending.pop(handle, None)
        self._attrs.pop(handle, None)

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    def internalize(self) -> None:
        """Commit the pending batch."""
        if not self._pending:
            return
        for handle, values in self._pending.items():
            self._attrs.setdefault(handle, {}).update(values)
        logger.debug(f"Internalized attributes for {len(self._pending)} records")
        self._pending = {}

    def lookup(self, handle: int, key: AttributeKey, default: Any = None) -> Any:
        return self._attrs.get(handle, {}).get(key, default)

    def attributes(self, handle: int) -> dict[AttributeKey, Any]:
        return dict(self._attrs.get(handle, {}))


class Repository:
    """Ordered, append-only collection of package records."""

    def __init__(self, pool: Pool, name: str = ""):
        self.pool = pool
        self.name = name
        self.records: list[PackageRecord] = []
        self.data = Repodata(pool)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[PackageRecord]:
        return iter(self.records)

    def __repr__(self) -> str:
        return f"Repository(name={self.name!r}, records={len(self.records)})"

    def new_record(self) -> PackageRecord:
        """Open a record; it joins the repository only through ``add_record``."""
        return PackageRecord(handle=self.pool.new_handle())

    def add_record(self, record: PackageRecord) -> PackageRecord:
        self.records.append(record)
        return record

    def discard(self, record: PackageRecord) -> None:
        """Throw away an open record that was never added."""
        self.data.drop(record.handle)
        self.pool.free_handle(record.handle)

    def internalize(self) -> None:
        self.data.internalize()

    def lookup(self, record: PackageRecord, key: AttributeKey, default: Any = None) -> Any:
        return self.data.lookup(record.handle, key, default)

    def lookup_str(self, record: PackageRecord, key: AttributeKey) -> str | None:
        """Look up an attribute and resolve pool ids and void markers to text."""
        value = self.lookup(record, key)
        if value is VOID and key == AttributeKey.SOURCENAME:
            return self.pool.id2str(record.name)
        if isinstance(value, PoolId):
            return self.pool.id2str(value)
        if value is None or isinstance(value, str):
            return value
        return str(value)

    def find(self, name: str) -> list[PackageRecord]:
        """All records with the given package name, in ingestion order."""
        name_id = self.pool.find_str(name)
        if name_id is None:
            return []
        return [r for r in self.records if r.name == name_id]
