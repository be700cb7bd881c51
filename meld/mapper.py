"""
Path translation between real filesystem paths and canonical map paths.

The canonical ("map") path is what identities are derived from, so it
must be deterministic for the same logical path across runs. Paths
under the user's home directory are stored relative to "~", which keeps
identities stable when the same home tree is reached through a
symlinked or differently-spelled prefix.
"""

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

HOME_PREFIX = "~"


def _home() -> Path:
    return Path.home().resolve()


def to_canonical(real_path) -> str:
    """Map a real path to its canonical map path."""
    resolved = Path(os.path.expanduser(str(real_path))).resolve()
    try:
        rel = resolved.relative_to(_home())
    except ValueError:
        canonical = resolved.as_posix()
    else:
        canonical = HOME_PREFIX if rel == Path(".") else f"{HOME_PREFIX}/{rel.as_posix()}"
    logger.debug("mapping: %s -> %s", real_path, canonical)
    return canonical


def to_real(canonical: str) -> Path:
    """Map a canonical map path back to a real path on this machine."""
    if canonical == HOME_PREFIX:
        return _home()
    if canonical.startswith(HOME_PREFIX + "/"):
        return _home() / canonical[len(HOME_PREFIX) + 1:]
    return Path(canonical)
