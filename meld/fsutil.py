"""Atomic file writes: temp file in the destination directory, fsync, rename."""

import os
import shutil
import tempfile
import time
from pathlib import Path


def _replace_with_retry(src: Path, dst: Path):
    """Replace dst with src, retrying on Windows PermissionError.

    On Windows, antivirus or indexing services can briefly lock files,
    causing ``PermissionError`` on rename. On POSIX, any error is
    raised immediately.
    """
    if os.name == "nt":
        for attempt in range(5):
            try:
                src.replace(dst)
                return
            except PermissionError:
                if attempt == 4:
                    raise
                time.sleep(0.01 * (2 ** attempt))
    else:
        src.replace(dst)


def _mkstemp_beside(path: Path) -> tuple[int, Path]:
    fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent),
        prefix=f".{path.name}.",
        suffix=".tmp",
    )
    return fd, Path(tmp_path)


def atomic_write_text(path: Path, content: str):
    """
    Write text to a file atomically via write-to-temp + rename.

    If the process dies mid-write, the destination either keeps its
    old content or does not exist. It is never half-written.
    """
    path = Path(path)
    fd, tmp_path = _mkstemp_beside(path)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        _replace_with_retry(tmp_path, path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def atomic_copy(src: Path, dst: Path):
    """Copy src over dst atomically, preserving src's permission bits."""
    dst = Path(dst)
    fd, tmp_path = _mkstemp_beside(dst)
    try:
        with open(src, "rb") as fin, os.fdopen(fd, "wb") as fout:
            shutil.copyfileobj(fin, fout)
            fout.flush()
            os.fsync(fout.fileno())
        shutil.copymode(src, tmp_path)
        _replace_with_retry(tmp_path, dst)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
