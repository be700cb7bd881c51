"""
Identity & Hashing

Two kinds of SHA-512 digests drive the store:

- Path hashes give every tracked entry a stable identity ("blob")
  derived from its canonical path, independent of content.
- Content hashes detect drift between the filesystem and the most
  recent stored version.

Directories have no byte content, so their content hash is the
sentinel string "DIR". Two directories are therefore
indistinguishable by content hash; only their members differ.
"""

import hashlib
from pathlib import Path

DIR_HASH = "DIR"

# Read files in 1 MiB chunks so large configs don't land in memory at once
_CHUNK_SIZE = 1024 * 1024


def hash_path(text: str) -> str:
    """SHA-512 of the UTF-8 bytes of a canonical path string."""
    return hashlib.sha512(text.encode("utf-8")).hexdigest()


def hash_bytes(path) -> str:
    """SHA-512 of a file's full byte content. Raises OSError if unreadable."""
    h = hashlib.sha512()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            h.update(chunk)
    return h.hexdigest()


def hash_contents(path) -> str:
    """Content hash of a filesystem entry: "DIR" for directories."""
    if Path(path).is_dir():
        return DIR_HASH
    return hash_bytes(path)


def aggregate_hash(content_hashes) -> str:
    """
    Hash over the ordered concatenation of member content hashes.

    Order-dependent: callers must feed members in a stable walk order
    so an unchanged tree reproduces the same aggregate.
    """
    h = hashlib.sha512()
    for content_hash in content_hashes:
        h.update(content_hash.encode("utf-8"))
    return h.hexdigest()
