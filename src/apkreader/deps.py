"""Parser for apk dependency lines such as ``so:libc.musl-x86_64.so.1 !foo pc:bar>=1.2``."""

from enum import Enum

from apkreader.models.package import PackageRecord
from apkreader.pool import Pool, RelFlag
from apkreader.repository import Repository

_WHITESPACE = " \t"
_NAME_STOP = " \t<>=~"
_OPERATORS = {"<": RelFlag.LT, ">": RelFlag.GT, "=": RelFlag.EQ}


class DepKind(Enum):
    PROVIDES = "provides"
    REQUIRES = "requires"
    CONFLICTS = "conflicts"
    SUPPLEMENTS = "supplements"


def parse_atom(pool: Pool, text: str, pos: int) -> tuple[int, int]:
    """Parse one ``name[op version]`` atom starting at ``pos``.

    Returns the dependency id and the position after the atom. Operator runs are
    not validated: whatever follows them up to the next whitespace is the version.
    """
    end = len(text)
    start = pos
    while pos < end and text[pos] not in _NAME_STOP:
        pos += 1
    id_ = pool.str2id(text[start:pos])

    flags = RelFlag(0)
    while pos < end and text[pos] in _OPERATORS:
        flags |= _OPERATORS[text[pos]]
        pos += 1
    # "~" is fuzzy version matching; it stays part of the version text
    if pos < end and text[pos] == "~":
        flags |= RelFlag.EQ

    if flags:
        start = pos
        while pos < end and text[pos] not in _WHITESPACE:
            pos += 1
        id_ = pool.rel2id(id_, pool.str2id(text[start:pos]), flags)
    return id_, pos


def add_dep(deps: list[int], id_: int) -> None:
    """Append a dependency unless the list already holds it."""
    if id_ not in deps:
        deps.append(id_)


def add_deps(repo: Repository, record: PackageRecord, kind: DepKind, text: str) -> None:
    """Append every atom of a dependency line to the record.

    A ``!`` prefix on a requires line turns that atom into a conflict. Supplement
    atoms are AND-ed together and added as a single relation.
    """
    pool = repo.pool
    supplements = 0
    pos = 0
    end = len(text)
    while pos < end:
        while pos < end and text[pos] in _WHITESPACE:
            pos += 1
        if pos == end:
            break

        what = kind
        if kind is DepKind.REQUIRES and text[pos] == "!":
            what = DepKind.CONFLICTS
            pos += 1

        id_, pos = parse_atom(pool, text, pos)
        match what:
            case DepKind.PROVIDES:
                add_dep(record.provides, id_)
            case DepKind.REQUIRES:
                add_dep(record.requires, id_)
            case DepKind.CONFLICTS:
                add_dep(record.conflicts, id_)
            case DepKind.SUPPLEMENTS:
                supplements = pool.rel2id(id_, supplements, RelFlag.AND) if supplements else id_

    if supplements:
        add_dep(record.supplements, supplements)
