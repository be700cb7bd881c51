"""
Push (write path)

Pushing a path creates or advances its version history:

    file       -> one Config, versioned on its own (push_object)
    directory  -> a DirectoryMap; every member is versioned on its own,
                  and a new manifest is written only when the tree's
                  aggregate hash moved (push_map)

Per-object state machine, against the current (highest) version:

    no version yet          -> NEW      blob + version 1 + configs row
    content hash differs    -> CONTENT  blob + version current+1
    only the tag differs    -> TAG      current row's tag updated in place
    otherwise               -> NONE     nothing written

Ordering: a blob is always written and verified before the version row
that points at it is committed (commit_version). A crash in between
orphans a blob, which is harmless; metadata never points at a blob
that was not fully written.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .config import Config, Version
from .dirmap import DirectoryMap, ManifestEntry, build_map, write_manifest

logger = logging.getLogger(__name__)


class UpdateType(Enum):
    NEW = "new"            # First push of this identity
    CONTENT = "content"    # Content changed, new version allocated
    TAG = "tag"            # Tag corrected on the current version
    NONE = "none"          # Matches the current version


@dataclass
class PushResult:
    identity: str
    path: str
    version: int
    update: UpdateType
    reclassified: bool = False

    def to_dict(self) -> dict:
        return {
            "identity": self.identity,
            "path": self.path,
            "version": self.version,
            "update": self.update.value,
            "reclassified": self.reclassified,
        }


@dataclass
class MapPushResult:
    blob: str
    version: int   # 0 when the aggregate hash was unchanged and no snapshot was taken
    hash: str
    members: list[PushResult] = field(default_factory=list)

    @property
    def snapshot_created(self) -> bool:
        return self.version != 0

    def to_dict(self) -> dict:
        return {
            "blob": self.blob,
            "version": self.version,
            "hash": self.hash,
            "snapshot_created": self.snapshot_created,
            "members": [m.to_dict() for m in self.members],
        }


def commit_version(meld_bin, config: Config, ver: int) -> Version:
    """
    Record version `ver` of a config: write the blob, verify it, then
    insert the version row. Directories have no blob.
    """
    if not config.is_dir:
        meld_bin.store_blob(config.real_path, config.blob, ver, config.data_hash)
    version = Version(
        data_hash=config.data_hash,
        ver=ver,
        tag=config.tag,
        owner=config.blob,
    )
    meld_bin.db.add_version(version)
    return version


def _reclassify(meld_bin, config: Config) -> bool:
    """Update stored subset/family when the push names different non-empty ones."""
    db = meld_bin.db
    stored = db.get_config(config.blob)
    if stored is None:
        # Version rows without a configs row: an earlier push died between
        # the two inserts. Restore the row so pulls can resolve the path.
        logger.warning("Config row missing for %s; re-adding", config.map_path)
        db.add_config(config)
        return False

    changed = False
    if config.subset and config.subset != stored.subset:
        logger.info("Subset differs; updating to %r", config.subset)
        db.update_subset(config.blob, config.subset)
        changed = True
    if config.family and config.family != stored.family:
        logger.info("Family differs; updating to %r", config.family)
        db.update_family(config.blob, config.family)
        changed = True
    return changed


def push_object(meld_bin, config: Config) -> PushResult:
    """Push a single tracked object and return its resulting version."""
    db = meld_bin.db
    current = db.get_current_version(config.blob)

    if current is None:
        logger.info("Adding new config to bin: %s", config.map_path)
        commit_version(meld_bin, config, 1)
        db.add_config(config)
        return PushResult(config.blob, config.map_path, 1, UpdateType.NEW)

    logger.info("Config exists in bin; determining needed updates")
    reclassified = _reclassify(meld_bin, config)

    if config.data_hash != current.data_hash:
        new_ver = current.ver + 1
        logger.info("Content differs; adding version %d", new_ver)
        commit_version(meld_bin, config, new_ver)
        return PushResult(
            config.blob, config.map_path, new_ver, UpdateType.CONTENT, reclassified
        )

    if config.tag != current.tag:
        logger.info("Tag differs; updating %r -> %r", current.tag, config.tag)
        db.update_version_tag(current, config.tag)
        return PushResult(
            config.blob, config.map_path, current.ver, UpdateType.TAG, reclassified
        )

    logger.info("Config matches most recent version; no updates needed")
    return PushResult(config.blob, config.map_path, current.ver, UpdateType.NONE, reclassified)


def push_map(meld_bin, dmap: DirectoryMap) -> MapPushResult:
    """
    Push every member of a map, and snapshot the tree if it changed.

    A new manifest (and maps row) is written only when the aggregate hash
    differs from the stored one. Members are pushed either way, since a
    per-file tag or classification can change without moving the hash.
    The manifest is written before the maps row that refers to it.
    """
    db = meld_bin.db
    current = db.get_current_map(dmap.blob)

    if current is None:
        target_ver = 1
    elif current.hash == dmap.hash:
        logger.info("Map unchanged at version %d; pushing members only", current.ver)
        target_ver = 0
    else:
        target_ver = current.ver + 1

    results = [push_object(meld_bin, member) for member in dmap.members]

    if target_ver != 0:
        logger.info("Writing map version %d", target_ver)
        write_manifest(
            meld_bin.manifest_path(dmap.blob, target_ver),
            [ManifestEntry(r.identity, r.version) for r in results],
        )
        dmap.ver = target_ver
        db.add_map(dmap)

    return MapPushResult(dmap.blob, target_ver, dmap.hash, results)


def push(meld_bin, path, subset: str = "", family: str = "", tag: str = ""):
    """
    Push a path: directories go through a map, everything else is a
    single object. Returns a MapPushResult or a PushResult.
    """
    path = Path(path)
    if path.is_dir():
        dmap = build_map(path, subset=subset, family=family, tag=tag, ignore=meld_bin.ignore)
        return push_map(meld_bin, dmap)
    config = Config.from_path(path, subset=subset, family=family, tag=tag)
    return push_object(meld_bin, config)
