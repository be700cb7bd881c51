"""
Directory Maps

A DirectoryMap aggregates a directory subtree into one versioned
unit. Every entry under the root (the root itself included) is a
separate tracked object with its own identity and version chain; the
map adds a second level of versioning on top:

- map.hash is the SHA-512 over the members' content hashes in walk
  order, so any change anywhere in the tree moves it.
- Each new map version owns a manifest file, {blob}-{ver}, listing
  one "memberBlob-memberVersion" line per member. The manifest is the
  only artifact that binds a set of member versions together as
  "the state of the tree at snapshot N".

Walk order is pre-order and lexical: the root first, then each child
sorted by name, with a directory's contents immediately after the
directory. Symlinks below the root are skipped.
"""

import fnmatch
import logging
from dataclasses import dataclass, field
from pathlib import Path

from . import mapper
from .config import Config
from .errors import BlobNotFound, InternalError
from .fsutil import atomic_write_text
from .hashing import aggregate_hash, hash_path

logger = logging.getLogger(__name__)


@dataclass
class DirectoryMap:
    """An aggregate snapshot of a directory tree."""
    blob: str
    ver: int
    hash: str
    tag: str
    members: list[Config] = field(default_factory=list)


@dataclass(frozen=True)
class ManifestEntry:
    blob: str
    ver: int

    def __str__(self):
        return f"{self.blob}-{self.ver}"


def _should_ignore(name: str, rel_path: str, ignore) -> bool:
    """Match a pattern against the entry name or its root-relative path."""
    return any(
        fnmatch.fnmatch(name, pattern) or fnmatch.fnmatch(rel_path, pattern)
        for pattern in ignore
    )


def walk_tree(root: Path, ignore=()):
    """Yield the root, then every entry below it in pre-order lexical order."""
    root = Path(root)
    yield root
    yield from _walk_children(root, "", tuple(ignore))


def _walk_children(path: Path, prefix: str, ignore: tuple):
    for item in sorted(path.iterdir(), key=lambda p: p.name):
        if item.is_symlink():
            logger.debug("Skipping symlink: %s", item)
            continue
        rel_path = f"{prefix}{item.name}"
        if _should_ignore(item.name, rel_path, ignore):
            logger.debug("Ignoring %s", item)
            continue
        yield item
        if item.is_dir():
            yield from _walk_children(item, f"{rel_path}/", ignore)


def build_map(
    root_path,
    subset: str = "",
    family: str = "",
    tag: str = "",
    ignore=(),
) -> DirectoryMap:
    """
    Walk a directory and build an (unversioned) map of its members.

    The returned map has ver=0; push_map assigns the real version.
    Raises OSError if any member cannot be read.
    """
    root_path = Path(root_path)
    logger.info("Building map for %s", root_path)

    members = [
        Config.from_path(entry, subset=subset, family=family, tag=tag)
        for entry in walk_tree(root_path, ignore)
    ]
    return DirectoryMap(
        blob=hash_path(mapper.to_canonical(root_path)),
        ver=0,
        hash=aggregate_hash(m.data_hash for m in members),
        tag=tag,
        members=members,
    )


# ── Manifests ─────────────────────────────────────────────────


def manifest_name(blob: str, ver: int) -> str:
    return f"{blob}-{ver}"


def write_manifest(path: Path, entries):
    """Write manifest lines atomically; an interrupted write leaves no file."""
    atomic_write_text(Path(path), "".join(f"{e}\n" for e in entries))


def read_manifest(path: Path) -> list[ManifestEntry]:
    path = Path(path)
    if not path.exists():
        raise BlobNotFound(f"Manifest missing: {path}")

    entries = []
    for lineno, line in enumerate(path.read_text(encoding="utf-8").splitlines(), 1):
        line = line.strip()
        if not line:
            continue
        blob, sep, ver = line.rpartition("-")
        if not sep or not blob or not ver.isdigit():
            raise InternalError(f"Corrupt manifest {path}, line {lineno}: {line!r}")
        entries.append(ManifestEntry(blob=blob, ver=int(ver)))
    return entries
