"""
Tracked objects and their versions.

A Config is the unit of single-file versioning: an identity derived
from its canonical path, a classification (subset/family), and the
content hash of whatever is on disk right now. Each distinct content
snapshot of a Config is a Version, numbered from 1 with no gaps.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from . import mapper
from .hashing import DIR_HASH, hash_contents, hash_path

logger = logging.getLogger(__name__)


@dataclass
class Version:
    """One immutable content snapshot of a tracked object."""
    data_hash: str   # SHA-512 of the file bytes, or "DIR"
    ver: int
    tag: str
    owner: str       # identity (blob) of the owning Config

    @property
    def is_dir(self) -> bool:
        return self.data_hash == DIR_HASH

    def to_dict(self) -> dict:
        return {
            "data_hash": self.data_hash,
            "ver": self.ver,
            "tag": self.tag,
            "owner": self.owner,
        }


@dataclass
class Config:
    """
    A tracked filesystem entry.

    Only blob, subset, family and map_path are persisted. real_path,
    tag and data_hash describe the entry as it is being pushed.
    """
    blob: str
    subset: str
    family: str
    map_path: str
    real_path: Path | None = None
    tag: str = ""
    data_hash: str = field(default="", compare=False)

    @property
    def is_dir(self) -> bool:
        return self.data_hash == DIR_HASH

    @classmethod
    def from_path(
        cls,
        real_path,
        subset: str = "",
        family: str = "",
        tag: str = "",
    ) -> "Config":
        """
        Build a Config for an existing path, hashing its current content.

        Raises OSError if the path cannot be read.
        """
        real_path = Path(real_path)
        map_path = mapper.to_canonical(real_path)
        logger.info("Using config at %s", real_path)
        logger.debug("Config mapped to %s", map_path)
        return cls(
            blob=hash_path(map_path),
            subset=subset,
            family=family,
            map_path=map_path,
            real_path=real_path,
            tag=tag,
            data_hash=hash_contents(real_path),
        )

    def to_dict(self) -> dict:
        return {
            "blob": self.blob,
            "subset": self.subset,
            "family": self.family,
            "map_path": self.map_path,
        }
