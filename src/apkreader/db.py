"""Database helpers."""

import logging
import sqlite3

import sqlmodel as sm
from sqlalchemy.engine import Engine
from sqlalchemy.engine.interfaces import DBAPIConnection
from sqlalchemy.event import listens_for
from sqlalchemy.pool import ConnectionPoolEntry
from sqlmodel import Session, select

from .constants import DB_URL
from .models import VOID, AttributeKey, Checksum, PackageRecord, StoredPackage, StoredRepository
from .repository import Repository

logger = logging.getLogger(__name__)


@listens_for(Engine, "connect", insert=True)
def on_engine_connect(
    dbapi_connection: DBAPIConnection,
    connection_record: ConnectionPoolEntry,
) -> None:
    """Event listener for synchronous engine connections."""
    try:
        if isinstance(dbapi_connection, sqlite3.Connection):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON;")
            cursor.close()
            logger.debug("Enabled SQLite foreign key support.")
    except Exception as e:
        logger.exception(f"Error setting SQLite PRAGMA: {e}")
        raise e


def init_db(engine: Engine) -> None:
    sm.SQLModel.metadata.create_all(engine)


def get_engine(url: str = DB_URL, **kwargs) -> Engine:
    """Create an engine and make sure all tables exist."""
    engine = sm.create_engine(url, **kwargs)
    init_db(engine)
    return engine


def _checksum_columns(value: Checksum | None) -> tuple[str | None, str | None]:
    if value is None:
        return None, None
    return value.hex, value.type.value


def build_package_row(repo: Repository, record: PackageRecord, repository_id: int) -> StoredPackage:
    """Flatten a finalized record and its internalized attributes into a row."""
    pool = repo.pool
    attrs = repo.data.attributes(record.handle)

    def text(key: AttributeKey) -> str | None:
        return repo.lookup_str(record, key) if key in attrs else None

    pkgid, pkgid_type = _checksum_columns(attrs.get(AttributeKey.PKGID))
    hdrid, hdrid_type = _checksum_columns(attrs.get(AttributeKey.HDRID))
    source_name = attrs.get(AttributeKey.SOURCENAME)

    return StoredPackage(
        name=pool.id2str(record.name),
        version=pool.id2str(record.version),
        arch=pool.id2str(record.arch),
        summary=text(AttributeKey.SUMMARY),
        description=text(AttributeKey.DESCRIPTION),
        url=text(AttributeKey.URL),
        build_time=attrs.get(AttributeKey.BUILDTIME),
        install_size=attrs.get(AttributeKey.INSTALLSIZE),
        packager=text(AttributeKey.PACKAGER),
        source_name=pool.id2str(record.name) if source_name is VOID else text(AttributeKey.SOURCENAME),
        licenses=list(attrs.get(AttributeKey.LICENSE, [])),
        provides=[pool.dep2str(id_) for id_ in record.provides],
        requires=[pool.dep2str(id_) for id_ in record.requires],
        conflicts=[pool.dep2str(id_) for id_ in record.conflicts],
        supplements=[pool.dep2str(id_) for id_ in record.supplements],
        pkgid=pkgid,
        pkgid_type=pkgid_type,
        hdrid=hdrid,
        hdrid_type=hdrid_type,
        location=text(AttributeKey.LOCATION),
        repository_id=repository_id,
    )


def store_repository(
    session: Session,
    repo: Repository,
    name: str | None = None,
    url: str | None = None,
) -> StoredRepository:
    """Replace the stored packages of a repository with the records of ``repo``.

    Args:
        session: Open database session
        repo: Ingested repository; only internalized attributes are stored
        name: Name to store the repository under (defaults to ``repo.name``)
        url: Optional origin URL

    Returns:
        The stored repository row
    """
    name = name or repo.name
    if not name:
        raise ValueError("A repository name is required to store it")

    stored = session.exec(select(StoredRepository).where(StoredRepository.name == name)).first()
    if stored is None:
        stored = StoredRepository(name=name, url=url)
        session.add(stored)
        session.flush()
    else:
        for package in stored.packages:
            session.delete(package)
        if url is not None:
            stored.url = url
        session.flush()
        session.expire(stored, ["packages"])

    rows = [build_package_row(repo, record, stored.id) for record in repo]
    session.add_all(rows)
    session.commit()
    session.refresh(stored)
    logger.info(f"Stored {len(rows)} packages for repository '{name}'")
    return stored


def find_packages(session: Session, name: str, repository: str | None = None) -> list[StoredPackage]:
    """Look up stored packages by name, optionally within one repository."""
    query = select(StoredPackage).where(StoredPackage.name == name)
    if repository is not None:
        query = query.join(StoredRepository).where(StoredRepository.name == repository)
    return list(session.exec(query).all())


def count_packages(session: Session, repository_id: int) -> int:
    q = select(sm.func.count()).select_from(StoredPackage).where(StoredPackage.repository_id == repository_id)
    count = session.scalar(q)
    return count if count is not None else 0


def list_repositories(session: Session) -> list[StoredRepository]:
    return list(session.exec(select(StoredRepository).order_by(StoredRepository.name)).all())
