"""
Error taxonomy.

Every user-facing failure derives from MeldError. Filesystem failures
are left as the builtin OSError. Only the CLI boundary turns an
exception into an exit status.
"""


class MeldError(Exception):
    """Base class for all meld failures."""


class StoreError(MeldError):
    """The metadata database failed (SQL or backend I/O)."""


# ── Bin lifecycle ─────────────────────────────────────────────


class InitFailed(MeldError):
    """A bin could not be created or opened."""


class BinAlreadyExists(InitFailed):
    def __init__(self, path):
        super().__init__(f"{path} already exists\n  Use '--force' to re-create it.")
        self.path = path


class ParentsDontExist(InitFailed):
    def __init__(self, path):
        super().__init__(f"Parent tree of {path} does not exist; use '--parents'")
        self.path = path


class NotABin(InitFailed):
    """Raised when opening a path that is not a complete bin."""

    def __init__(self, path):
        super().__init__(
            f"Not a valid meld bin: {path}\n"
            f"  Run 'meld -b {path} init' to create one."
        )
        self.path = path


# ── Lookups ───────────────────────────────────────────────────


class FileNotFound(MeldError):
    """The requested path has never been pushed to this bin."""


class BlobNotFound(MeldError):
    """A blob or manifest referenced by the metadata is missing on disk."""


class TagNotFound(MeldError):
    pass


class VersionNotFound(MeldError):
    pass


# ── Writes ────────────────────────────────────────────────────


class BlobTooLarge(MeldError):
    """Raised when a file exceeds the bin's max_blob_size."""


class BlobVerificationError(MeldError):
    """A freshly written blob does not hash to the expected content hash."""


class InternalError(MeldError):
    """An internal invariant was violated. Not caused by user input."""
