"""String and relation interning shared by every repository of a pool."""

import logging
from enum import IntFlag
from os import PathLike
from pathlib import Path
from typing import NamedTuple

logger = logging.getLogger(__name__)

# relation ids live above this bit, string ids below it
RELATION_BIT = 1 << 31

ID_NULL = 0
ID_EMPTY = 1
ID_NOARCH = 2


class RelFlag(IntFlag):
    """Relation operators; comparison flags combine (GT | EQ is ">=")."""

    GT = 1
    EQ = 2
    LT = 4
    AND = 16


_REL_OPERATORS = {
    RelFlag.GT: ">",
    RelFlag.EQ: "=",
    RelFlag.GT | RelFlag.EQ: ">=",
    RelFlag.LT: "<",
    RelFlag.LT | RelFlag.EQ: "<=",
    RelFlag.LT | RelFlag.GT: "<>",
    RelFlag.LT | RelFlag.GT | RelFlag.EQ: "<=>",
    RelFlag.AND: " & ",
}


class Relation(NamedTuple):
    name: int
    evr: int
    flags: RelFlag


class Pool:
    """Package database: interning tables, record handles and the error sink."""

    def __init__(self, rootdir: str | PathLike | None = None):
        self.rootdir = Path(rootdir) if rootdir is not None else None
        self.last_error: str | None = None

        self._strings: list[str] = ["", ""]
        self._string_ids: dict[str, int] = {"": ID_EMPTY}
        self._relations: list[Relation] = []
        self._relation_ids: dict[Relation, int] = {}
        self._handles: list[bool] = [False, False]  # 0 and 1 are reserved, like the string ids

        if self.str2id("noarch") != ID_NOARCH:
            raise RuntimeError("noarch must be the first interned string")

    def str2id(self, value: str) -> int:
        """Intern a string, returning the same id for the same text."""
        if (id_ := self._string_ids.get(value)) is not None:
            return id_
        id_ = len(self._strings)
        self._strings.append(value)
        self._string_ids[value] = id_
        return id_

    def find_str(self, value: str) -> int | None:
        """Id of an already interned string, without interning it."""
        return self._string_ids.get(value)

    def id2str(self, id_: int) -> str:
        if self.is_reldep(id_):
            return self.dep2str(id_)
        return self._strings[id_]

    def rel2id(self, name: int, evr: int, flags: RelFlag) -> int:
        """Intern a relation between two ids."""
        rel = Relation(name, evr, RelFlag(flags))
        if (id_ := self._relation_ids.get(rel)) is not None:
            return id_
        id_ = RELATION_BIT | len(self._relations)
        self._relations.append(rel)
        self._relation_ids[rel] = id_
        return id_

    @staticmethod
    def is_reldep(id_: int) -> bool:
        return bool(id_ & RELATION_BIT)

    def relation(self, id_: int) -> Relation:
        if not self.is_reldep(id_):
            raise ValueError(f"id {id_} is not a relation")
        return self._relations[id_ & ~RELATION_BIT]

    def dep2str(self, id_: int) -> str:
        """Render a dependency id as text, e.g. ``so:libc.musl-x86_64.so.1`` or ``foo>=1.2``."""
        if not self.is_reldep(id_):
            return self._strings[id_]
        rel = self.relation(id_)
        op = _REL_OPERATORS.get(rel.flags, f" <{int(rel.flags)}> ")
        return f"{self.dep2str(rel.name)}{op}{self.dep2str(rel.evr)}"

    @property
    def nstrings(self) -> int:
        return len(self._strings)

    @property
    def nrelations(self) -> int:
        return len(self._relations)

    def new_handle(self) -> int:
        handle = len(self._handles)
        self._handles.append(True)
        return handle

    def free_handle(self, handle: int) -> None:
        """Release a handle; the trailing one is reused so handles stay dense."""
        self._handles[handle] = False
        while len(self._handles) > 2 and not self._handles[-1]:
            self._handles.pop()

    def resolve_path(self, path: str | PathLike) -> Path:
        """Resolve a path against the configured root directory."""
        if self.rootdir is None:
            return Path(path)
        return self.rootdir / Path(path).relative_to(Path(path).anchor)

    def report(self, context: str | PathLike | None, message: str) -> str:
        """Record and log an error; returns the formatted message."""
        text = f"{context}: {message}" if context is not None else message
        self.last_error = text
        logger.error(text)
        return text
