from os import getenv
from pathlib import Path

# ensure data dir exists
# this will run every time constants.py is imported but that's acceptable
DATA_DIR = Path(getenv("APKREADER_DATA_DIR", "data")).resolve()
DATA_DIR.mkdir(parents=True, exist_ok=True)

INDEXES_DIR = DATA_DIR / "indexes"

# set database url
if DATA_DIR.is_relative_to(Path.cwd()):
    DB_URL = f"sqlite:///{DATA_DIR.relative_to(Path.cwd()) / 'apkreader.db'}"
else:
    DB_URL = f"sqlite:///{DATA_DIR / 'apkreader.db'}"

ALPINE_MIRROR = getenv("APKREADER_MIRROR", "https://dl-cdn.alpinelinux.org/alpine")

# archive member names
PKGINFO_NAME = ".PKGINFO"
INDEX_NAME = "APKINDEX"

# refuse to parse package metadata larger than this
MAX_PKGINFO_SIZE = 10 * 1024 * 1024

# raw bytes pulled from the source per read
READ_CHUNK_SIZE = 65536

# first bytes of every gzip member
GZIP_MAGIC = b"\x1f\x8b"
