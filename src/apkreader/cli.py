"""apkreader command line: ingest .apk files and APKINDEX archives."""

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table
from sqlmodel import Session

from apkreader.constants import DB_URL
from apkreader.db import count_packages, find_packages, get_engine, list_repositories, store_repository
from apkreader.errors import ApkError
from apkreader.fetcher import SkipMode, download_index
from apkreader.ingest import AddFlags, ingest_index_file, ingest_package_archive
from apkreader.models.package import AttributeKey, PackageRecord
from apkreader.pool import Pool
from apkreader.repository import Repository
from apkreader.utils import format_build_time, format_checksum

cli = typer.Typer(help="Read Alpine package metadata.", no_args_is_help=True)


def describe(repo: Repository, record: PackageRecord) -> str:
    """One line summary of a record."""
    pool = repo.pool
    parts = [
        f"{pool.id2str(record.name)}-{pool.id2str(record.version)}",
        pool.id2str(record.arch),
    ]
    for label, deps in (
        ("provides", record.provides),
        ("requires", record.requires),
        ("conflicts", record.conflicts),
        ("install_if", record.supplements),
    ):
        if deps:
            parts.append(f"{label}=[{', '.join(pool.dep2str(d) for d in deps)}]")
    for key in (AttributeKey.PKGID, AttributeKey.HDRID):
        if (checksum := repo.lookup(record, key)) is not None:
            parts.append(f"{key.value}={format_checksum(checksum.type, checksum.digest)}")
    return " ".join(parts)


def _store(repo: Repository, db_url: str, url: str | None = None) -> None:
    engine = get_engine(db_url)
    with Session(engine) as session:
        stored = store_repository(session, repo, url=url)
        typer.echo(f"Stored {len(repo)} packages in repository '{stored.name}'")


@cli.command("pkg")
def pkg(
    paths: list[Path] = typer.Argument(..., help="Package archives (.apk) to read"),
    pkgid: bool = typer.Option(False, "--pkgid", help="Compute the .PKGINFO MD5 checksum"),
    hdrid: bool = typer.Option(False, "--hdrid", help="Compute the control segment SHA-1 checksum"),
    no_location: bool = typer.Option(False, "--no-location", help="Do not record file locations"),
    name: str = typer.Option("local", help="Repository name used when storing"),
    db: str | None = typer.Option(None, help="Database URL to store the packages in"),
):
    """Read one or more package archives."""
    repo = Repository(Pool(), name)
    flags = AddFlags(0)
    if pkgid:
        flags |= AddFlags.WITH_PKGID
    if hdrid:
        flags |= AddFlags.WITH_HDRID
    if no_location:
        flags |= AddFlags.NO_LOCATION

    failed = 0
    for path in paths:
        try:
            record = ingest_package_archive(repo, path, flags)
        except ApkError as e:
            typer.echo(f"error: {e}", err=True)
            failed += 1
            continue
        typer.echo(describe(repo, record))

    if db:
        _store(repo, db)
    if failed:
        raise typer.Exit(code=1)


@cli.command("index")
def index(
    path: Path = typer.Argument(..., help="APKINDEX.tar.gz or a bare APKINDEX file"),
    raw: bool = typer.Option(False, "--raw", help="Treat the file as a bare index, not a tar archive"),
    name: str | None = typer.Option(None, help="Repository name used when storing"),
    db: str | None = typer.Option(None, help="Database URL to store the packages in"),
):
    """Read a repository index."""
    repo = Repository(Pool(), name or str(path))
    try:
        records = ingest_index_file(repo, path, AddFlags.ADD_INDEX if raw else None)
    except ApkError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1)

    for record in records:
        typer.echo(describe(repo, record))
    if db:
        _store(repo, db)


@cli.command("fetch")
def fetch(
    release: str = typer.Argument(..., help="Alpine release, e.g. 3.20 or edge"),
    branch: str = typer.Argument("main", help="Repository branch (main, community, testing)"),
    arch: str = typer.Argument("x86_64", help="Architecture"),
    mirror: str | None = typer.Option(None, help="Mirror base URL"),
    skip_mode: SkipMode = typer.Option(SkipMode.CHECK, help="When to skip re-downloading"),
    db: str | None = typer.Option(None, help="Database URL to store the packages in"),
):
    """Download an index from a mirror and read it."""
    kwargs = {"mirror": mirror} if mirror else {}
    result = asyncio.run(download_index(release, branch, arch, skip_mode=skip_mode, **kwargs))
    if result is None:
        typer.echo(f"error: could not download the {release}/{branch}/{arch} index", err=True)
        raise typer.Exit(code=1)

    url, local_path = result
    repo = Repository(Pool(), f"{release}/{branch}/{arch}")
    try:
        records = ingest_index_file(repo, local_path)
    except ApkError as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Read {len(records)} packages from {url}")
    if db:
        _store(repo, db, url=url)


@cli.command("show")
def show(
    name: str = typer.Argument(..., help="Package name"),
    repo: str | None = typer.Option(None, "--repo", help="Only look in this repository"),
    db: str = typer.Option(DB_URL, help="Database URL"),
):
    """Show stored packages with the given name."""
    with Session(get_engine(db)) as session:
        packages = find_packages(session, name, repository=repo)
        if not packages:
            typer.echo(f"error: no stored package named '{name}'", err=True)
            raise typer.Exit(code=1)

        table = Table("Repository", "Version", "Arch", "Built", "Size", "Origin")
        for package in packages:
            table.add_row(
                package.repository.name,
                package.version,
                package.arch,
                format_build_time(package.build_time),
                package.install_size_str,
                package.source_name or "-",
            )
    Console(width=200).print(table)


@cli.command("repos")
def repos(db: str = typer.Option(DB_URL, help="Database URL")):
    """List stored repositories."""
    table = Table("Repository", "Packages", "Last fetched", "URL")
    with Session(get_engine(db)) as session:
        for stored in list_repositories(session):
            table.add_row(
                stored.name,
                str(count_packages(session, stored.id)),
                stored.format_last_fetched_at or "-",
                stored.url or "-",
            )
    Console(width=200).print(table)


if __name__ == "__main__":
    cli()
