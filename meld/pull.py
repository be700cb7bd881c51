"""
Pull (read path)

Pulling a path restores a selected revision to the real filesystem.

Selection (select_version) runs over a tracked object's versions in
ascending version order, so ties are always broken the same way:

    1. a non-empty tag selects the first version carrying that tag
    2. otherwise a non-zero version number selects that exact version
    3. with neither requested, the most recent version is selected

A tag or version that was requested but not found raises TagNotFound /
VersionNotFound, unless allow_recent is set, in which case the most
recent version is used instead.

Versions are looked up keyed by content hash, so versions with
identical content collapse into the highest-numbered one. Asking for
any of the collapsed versions selects the survivor, which restores the
same bytes.

Directories:
    A "DIR" version restores only the directory node itself. A whole
    tree is restored by pull_map, which replays the current manifest
    and pulls every member at the exact version recorded there. For
    map members the manifest version is authoritative; tag and
    allow_recent apply only to standalone object pulls.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from . import mapper
from .config import Version
from .dirmap import read_manifest
from .errors import BlobNotFound, FileNotFound, TagNotFound, VersionNotFound
from .hashing import hash_contents, hash_path

logger = logging.getLogger(__name__)


@dataclass
class PullResult:
    identity: str
    path: str
    version: int
    restored: bool   # False when the file on disk already matched

    def to_dict(self) -> dict:
        return {
            "identity": self.identity,
            "path": self.path,
            "version": self.version,
            "restored": self.restored,
        }


def select_version(
    versions: dict[str, Version],
    tag: str = "",
    ver: int = 0,
    allow_recent: bool = False,
) -> Version:
    """Pick a version by tag, explicit number, or recency."""
    ordered = sorted(versions.values(), key=lambda v: v.ver)
    if not ordered:
        raise VersionNotFound("No versions to select from")
    recent = ordered[-1]

    if tag:
        for v in ordered:
            if v.tag == tag:
                return v
    if ver:
        for v in ordered:
            if v.ver == ver:
                return v

    if not tag and not ver:
        return recent
    if allow_recent:
        logger.info("Requested version not found; using most recent (%d)", recent.ver)
        return recent
    if tag:
        raise TagNotFound(f"Tag not found: {tag!r}")
    raise VersionNotFound(f"Version not found: {ver}")


def _redirect_collapsed(rows, versions, tag: str, ver: int) -> tuple[str, int]:
    """Point a request at a version dropped by content collapsing to its survivor."""
    if tag:
        for r in rows:
            if r.tag == tag:
                survivor = versions[r.data_hash]
                if survivor.ver != r.ver:
                    return "", survivor.ver
                return tag, ver
    if ver:
        for r in rows:
            if r.ver == ver:
                return tag, versions[r.data_hash].ver
    return tag, ver


@dataclass
class _PullPlan:
    """A resolved pull of one object, ready to apply."""
    identity: str
    map_path: str
    real_path: Path
    selected: Version
    needs_restore: bool


def _resolve(
    meld_bin,
    identity: str,
    tag: str = "",
    version: int = 0,
    allow_recent: bool = False,
) -> _PullPlan:
    """
    Select the version to pull and check that it can be restored.

    Reads only; every lookup failure (FileNotFound, TagNotFound,
    VersionNotFound, BlobNotFound) is raised here, before anything on
    disk is changed.
    """
    db = meld_bin.db
    versions = db.get_versions(identity)
    map_path = db.get_mapped_path(identity)
    if not versions or map_path is None:
        raise FileNotFound(f"Config not found in bin: {identity[:12]}")

    real_path = mapper.to_real(map_path)
    on_disk = hash_contents(real_path) if real_path.exists() else ""

    if tag or version:
        tag, version = _redirect_collapsed(db.list_versions(identity), versions, tag, version)
    selected = select_version(versions, tag, version, allow_recent)

    needs_restore = selected.data_hash != on_disk
    if needs_restore and not selected.is_dir:
        if not meld_bin.blob_path(identity, selected.ver).is_file():
            raise BlobNotFound(f"Blob not found: {identity}/{selected.ver}")
    return _PullPlan(identity, map_path, real_path, selected, needs_restore)


def _apply(meld_bin, plan: _PullPlan) -> PullResult:
    if not plan.needs_restore:
        logger.info("%s already at version %d", plan.real_path, plan.selected.ver)
    elif plan.selected.is_dir:
        logger.info("Creating directory %s", plan.real_path)
        plan.real_path.mkdir(parents=True, exist_ok=True)
    else:
        logger.info("Restoring %s to version %d", plan.real_path, plan.selected.ver)
        meld_bin.restore_blob(plan.identity, plan.selected.ver, plan.real_path)
    return PullResult(plan.identity, plan.map_path, plan.selected.ver, plan.needs_restore)


def pull_object(
    meld_bin,
    identity: str,
    tag: str = "",
    version: int = 0,
    allow_recent: bool = False,
) -> PullResult:
    """
    Restore one tracked object to its real path.

    Nothing on disk is touched unless the selected version differs from
    what is already there. Raises FileNotFound for an unknown identity and
    BlobNotFound when the selected blob is missing from the bin.
    """
    return _apply(meld_bin, _resolve(meld_bin, identity, tag, version, allow_recent))


def pull_map(
    meld_bin,
    directory_path,
    tag: str = "",
    version: int = 0,
    allow_recent: bool = False,
) -> list[PullResult]:
    """
    Restore a directory tree from its current map snapshot.

    Every member is resolved before any is restored, so a member that
    cannot be pulled fails the whole call with the tree untouched.
    Falls back to a single-object pull (with the caller's selectors) when
    the path was never pushed as a map.
    """
    blob = hash_path(mapper.to_canonical(directory_path))
    current = meld_bin.db.get_current_map(blob)
    if current is None:
        return [pull_object(meld_bin, blob, tag, version, allow_recent)]

    if tag or version or allow_recent:
        logger.warning("Selectors are ignored for map members; replaying map version %d",
                       current.ver)

    entries = read_manifest(meld_bin.manifest_path(blob, current.ver))
    plans = [_resolve(meld_bin, e.blob, version=e.ver) for e in entries]
    return [_apply(meld_bin, plan) for plan in plans]


def pull(
    meld_bin,
    path,
    tag: str = "",
    version: int = 0,
    allow_recent: bool = False,
) -> list[PullResult]:
    """Pull a path, whether it was pushed as a file or as a directory map."""
    return pull_map(meld_bin, Path(path), tag, version, allow_recent)
