"""
Bins

A bin is the on-disk root of a meld store:

    {bin}/
        blobs/{identity}/{version}     full copy of each file revision
        maps/{mapIdentity}-{mapVersion} directory snapshot manifests
        meld.db                        metadata (configs, versions, maps)
        config.json                    bin settings

The bin exclusively owns these paths. It is created once with
Bin.init() and opened for every later operation with Bin.open(), which
refuses to return a bin unless all four structural paths exist.

    with Bin.init("/srv/meld", parents=True) as b:
        ...

    with Bin.open("/srv/meld") as b:
        push(b, "/etc/nginx")
"""

import json
import logging
import shutil
import time
from pathlib import Path

from . import __version__
from .db import Database
from .dirmap import manifest_name
from .errors import (
    BinAlreadyExists,
    BlobNotFound,
    BlobTooLarge,
    BlobVerificationError,
    InitFailed,
    NotABin,
    ParentsDontExist,
    StoreError,
)
from .fsutil import atomic_copy
from .hashing import hash_bytes

logger = logging.getLogger(__name__)

MAP_DIR = "maps"
BLOBS_DIR = "blobs"
MELD_DB = "meld.db"
CONFIG_FILE = "config.json"


class Bin:
    """
    A meld bin.

    Thread Safety:
        One process operates on one bin at a time. Nothing here locks;
        concurrent invocations against the same bin must be serialized
        by the caller, as with a local working copy.
    """

    # Default: 100 MB max blob size
    # Note: 0 or missing value uses DEFAULT_MAX_BLOB_SIZE
    DEFAULT_MAX_BLOB_SIZE = 100 * 1024 * 1024

    def __init__(self, path):
        self.path = Path(path)
        self.maps = self.path / MAP_DIR
        self.blobs = self.path / BLOBS_DIR
        self.db = Database(self.path / MELD_DB)
        self.max_blob_size = self.DEFAULT_MAX_BLOB_SIZE
        self.ignore: list[str] = []

    def is_valid(self) -> bool:
        return (
            self.path.exists()
            and self.blobs.exists()
            and self.maps.exists()
            and self.db.path.exists()
        )

    @classmethod
    def open(cls, path) -> "Bin":
        """Open an existing bin. Raises NotABin unless it is structurally complete."""
        logger.info("Opening bin at %s", path)
        bin_ = cls(path)
        if not bin_.is_valid():
            raise NotABin(path)
        bin_._load_config()
        return bin_

    @classmethod
    def init(cls, path, force: bool = False, parents: bool = False) -> "Bin":
        """
        Create and initialize a new bin.

        force removes an existing directory at path first; parents creates
        missing parent directories. Any failure after directories have been
        created is raised as InitFailed, never ignored.
        """
        logger.info("Creating bin at %s", path)
        bin_ = cls(path)

        if bin_.path.exists():
            logger.warning("Bin folder already exists")
            if not force:
                raise BinAlreadyExists(path)
            logger.warning("Removing %s", path)
            try:
                shutil.rmtree(bin_.path)
            except OSError as e:
                raise InitFailed(f"Init Failed: {e}") from e

        cls._create_dir(bin_.path, parents)
        try:
            cls._create_dir(bin_.maps, False)
            cls._create_dir(bin_.blobs, False)
            bin_._populate()
        except InitFailed:
            bin_._discard()
            raise
        bin_._load_config()
        return bin_

    def _populate(self):
        try:
            self.db.create_schema()
            (self.path / CONFIG_FILE).write_text(json.dumps({
                "version": __version__,
                "created_at": time.time(),
                "max_blob_size": self.DEFAULT_MAX_BLOB_SIZE,
                "ignore": [],
            }, indent=2))
        except (StoreError, OSError) as e:
            raise InitFailed(f"Init Failed: {e}") from e
        if not self.is_valid():
            raise InitFailed("Init Failed: Failed to Create Valid Bin")

    def _discard(self):
        """Remove a partially created bin so init can be retried."""
        logger.warning("Removing partially created bin at %s", self.path)
        self.db.close()
        shutil.rmtree(self.path, ignore_errors=True)

    @staticmethod
    def _create_dir(path: Path, parents: bool):
        logger.info("Creating %s", path)
        try:
            path.mkdir(parents=parents)
        except FileNotFoundError as e:
            raise ParentsDontExist(path) from e
        except OSError as e:
            raise InitFailed(f"Init Failed: {e}") from e

    # ── Settings ──────────────────────────────────────────────────

    def _read_config(self) -> dict:
        """Read bin settings. A missing config.json means defaults."""
        config_path = self.path / CONFIG_FILE
        if config_path.exists():
            return json.loads(config_path.read_text())
        return {}

    def _load_config(self):
        config = self._read_config()
        max_blob_size = config.get("max_blob_size", 0)
        if not isinstance(max_blob_size, int) or isinstance(max_blob_size, bool):
            raise ValueError(
                f"Invalid config: max_blob_size must be an integer, got {max_blob_size!r}"
            )
        if max_blob_size < 0:
            raise ValueError(
                f"Invalid config: max_blob_size must be >= 0, got {max_blob_size}\n"
                f"  Use 0 for default limit ({self.DEFAULT_MAX_BLOB_SIZE} bytes)"
            )
        self.max_blob_size = max_blob_size or self.DEFAULT_MAX_BLOB_SIZE
        self.ignore = list(config.get("ignore", []))

    # ── Blobs & Manifests ─────────────────────────────────────────

    def blob_path(self, identity: str, ver: int) -> Path:
        return self.blobs / identity / str(ver)

    def manifest_path(self, blob: str, ver: int) -> Path:
        return self.maps / manifest_name(blob, ver)

    def store_blob(self, source: Path, identity: str, ver: int, data_hash: str) -> Path:
        """
        Copy a file revision into blobs/{identity}/{ver} and verify it.

        The stored copy must hash to data_hash; otherwise it is removed and
        BlobVerificationError is raised. Nothing is recorded in metadata here.
        """
        size = Path(source).stat().st_size
        if size > self.max_blob_size:
            raise BlobTooLarge(
                f"{source} is {size} bytes, exceeds limit of {self.max_blob_size} bytes"
            )

        dest = self.blob_path(identity, ver)
        dest.parent.mkdir(exist_ok=True)
        atomic_copy(source, dest)

        stored_hash = hash_bytes(dest)
        if stored_hash != data_hash:
            dest.unlink()
            raise BlobVerificationError(
                f"Blob {identity}/{ver} changed while being stored; push again"
            )
        return dest

    def restore_blob(self, identity: str, ver: int, dest: Path):
        """Copy blobs/{identity}/{ver} to dest. Raises BlobNotFound if missing."""
        src = self.blob_path(identity, ver)
        if not src.is_file():
            raise BlobNotFound(f"Blob not found: {identity}/{ver}")
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        atomic_copy(src, dest)

    def stats(self) -> dict:
        return {
            "path": str(self.path),
            "blobs": str(self.blobs),
            "maps": str(self.maps),
            "db": str(self.db.path),
            "rows": self.db.stats(),
            "manifests": sum(1 for _ in self.maps.iterdir()),
        }

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False

    def close(self):
        self.db.close()
