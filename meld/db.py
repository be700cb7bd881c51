"""
Metadata Store

SQLite-backed storage for the three relations a bin keeps:

- configs   one row per identity ever pushed (classification + path)
- versions  one row per content snapshot of an identity
- maps      one row per aggregate snapshot of a directory tree

The tables are independent: there is no foreign-key enforcement, and
referential integrity between versions.owner and configs.id is a
logical invariant maintained by the push engine. Every mutation is a
single statement committed on its own, so a failure never leaves a
partial write behind.

Thread Safety:
    A Database is used by one process operating on one bin at a time.
    There is no locking beyond what SQLite itself provides, and no
    transaction spans more than one statement. Callers that need
    concurrent access must serialize it externally.
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path

from .config import Config, Version
from .dirmap import DirectoryMap
from .errors import StoreError

logger = logging.getLogger(__name__)

# Plain CREATE TABLE on purpose: running the schema twice against a
# live database must fail rather than pass silently.
INIT_CONFIGS = "CREATE TABLE configs (id TEXT, subset TEXT, family TEXT, map_path TEXT)"
INIT_VERSIONS = "CREATE TABLE versions (id TEXT, ver INTEGER, tag TEXT, owner TEXT)"
INIT_MAPS = "CREATE TABLE maps (id TEXT, ver INTEGER, nhash TEXT, tag TEXT)"


class Database:
    """Handle on a bin's metadata database file."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._conn = None

    @property
    def conn(self) -> sqlite3.Connection:
        """Open the connection lazily so a Database can name a file before it exists."""
        if self._conn is None:
            try:
                self._conn = sqlite3.connect(str(self.path))
                self._conn.execute("PRAGMA synchronous=FULL")
            except sqlite3.Error as e:
                raise StoreError(f"SQL Failed: {e}") from e
        return self._conn

    @contextmanager
    def _sql(self):
        """Translate backend failures into StoreError."""
        conn = self.conn
        try:
            yield conn
        except sqlite3.Error as e:
            conn.rollback()
            raise StoreError(f"SQL Failed: {e}") from e

    def _write(self, statement: str, params: tuple = ()):
        with self._sql() as conn:
            conn.execute(statement, params)
            conn.commit()

    # ── Schema ────────────────────────────────────────────────────

    def create_schema(self):
        """Create the three relations. Fails if any of them already exists."""
        logger.info("Creating %s", self.path)
        with self._sql() as conn:
            for statement in (INIT_CONFIGS, INIT_VERSIONS, INIT_MAPS):
                conn.execute(statement)
            conn.commit()

    # ── Configs ───────────────────────────────────────────────────

    def add_config(self, config: Config):
        """Insert a configs row. Uniqueness of the identity is the caller's job."""
        self._write(
            "INSERT INTO configs (id, subset, family, map_path) VALUES (?, ?, ?, ?)",
            (config.blob, config.subset, config.family, config.map_path),
        )

    def config_exists(self, map_path: str) -> str | None:
        """Return the stored identity for a canonical path, if it was ever tracked."""
        with self._sql() as conn:
            row = conn.execute(
                "SELECT id FROM configs WHERE map_path = ?", (map_path,)
            ).fetchone()
        return row[0] if row else None

    def get_config(self, blob: str) -> Config | None:
        with self._sql() as conn:
            row = conn.execute(
                "SELECT id, subset, family, map_path FROM configs WHERE id = ?", (blob,)
            ).fetchone()
        if row is None:
            return None
        return Config(blob=row[0], subset=row[1], family=row[2], map_path=row[3])

    def get_mapped_path(self, blob: str) -> str | None:
        """Reverse lookup: identity -> canonical path."""
        with self._sql() as conn:
            row = conn.execute(
                "SELECT map_path FROM configs WHERE id = ?", (blob,)
            ).fetchone()
        return row[0] if row else None

    def update_subset(self, blob: str, subset: str):
        self._write("UPDATE configs SET subset = ? WHERE id = ?", (subset, blob))

    def update_family(self, blob: str, family: str):
        self._write("UPDATE configs SET family = ? WHERE id = ?", (family, blob))

    # ── Versions ──────────────────────────────────────────────────

    def add_version(self, version: Version):
        self._write(
            "INSERT INTO versions (id, ver, tag, owner) VALUES (?, ?, ?, ?)",
            (version.data_hash, version.ver, version.tag, version.owner),
        )

    def get_current_version(self, owner: str) -> Version | None:
        """The version row with the highest ver for an owner, or None."""
        with self._sql() as conn:
            row = conn.execute(
                """SELECT id, ver, tag, owner FROM versions
                   WHERE owner = ? ORDER BY ver DESC LIMIT 1""",
                (owner,),
            ).fetchone()
        if row is None:
            return None
        return Version(data_hash=row[0], ver=row[1], tag=row[2], owner=row[3])

    def list_versions(self, owner: str) -> list[Version]:
        """Every version row for an owner, in ascending ver order."""
        with self._sql() as conn:
            rows = conn.execute(
                """SELECT id, ver, tag, owner FROM versions
                   WHERE owner = ? ORDER BY ver ASC""",
                (owner,),
            ).fetchall()
        return [Version(data_hash=r[0], ver=r[1], tag=r[2], owner=r[3]) for r in rows]

    def get_versions(self, owner: str) -> dict[str, Version]:
        """
        Every version for an owner, keyed by content hash.

        Versions that share identical content collapse into one entry;
        the highest ver wins. Insertion order follows the first
        appearance of each content hash.
        """
        versions = {}
        for v in self.list_versions(owner):
            versions[v.data_hash] = v
        return versions

    def update_version_tag(self, version: Version, tag: str):
        """Correct the tag of an existing version row in place."""
        self._write(
            "UPDATE versions SET tag = ? WHERE owner = ? AND ver = ?",
            (tag, version.owner, version.ver),
        )

    # ── Maps ──────────────────────────────────────────────────────

    def add_map(self, dmap: DirectoryMap):
        self._write(
            "INSERT INTO maps (id, ver, nhash, tag) VALUES (?, ?, ?, ?)",
            (dmap.blob, dmap.ver, dmap.hash, dmap.tag),
        )

    def get_current_map(self, blob: str) -> DirectoryMap | None:
        with self._sql() as conn:
            row = conn.execute(
                """SELECT id, ver, nhash, tag FROM maps
                   WHERE id = ? ORDER BY ver DESC LIMIT 1""",
                (blob,),
            ).fetchone()
        if row is None:
            return None
        return DirectoryMap(blob=row[0], ver=row[1], hash=row[2], tag=row[3])

    # ── Statistics ────────────────────────────────────────────────

    def stats(self) -> dict:
        """Row counts per relation."""
        counts = {}
        with self._sql() as conn:
            for table in ("configs", "versions", "maps"):
                counts[table] = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
        return counts

    def close(self):
        """Close the SQLite connection. Safe to call multiple times."""
        if self._conn is None:
            return
        self._conn.close()
        self._conn = None
