"""
Meld — Local Configuration Version Store

Tracks files and directory trees under a managed root (a "bin"),
keeping every distinct revision as an immutable blob keyed by the
object's identity and version number. Metadata (identity, tags,
classification, version lineage) lives in a SQLite database inside
the bin.

    from meld import Bin
    from meld.push import push
    from meld.pull import pull

    with Bin.open("/srv/meld") as b:
        push(b, "/etc/nginx", tag="stable")
        pull(b, "/etc/nginx/nginx.conf", version=1)
"""

__version__ = "0.2.0"

__all__ = [
    # Bin
    "Bin",
    # Records
    "Config",
    "Version",
    "DirectoryMap",
    # Results
    "PushResult",
    "MapPushResult",
    "PullResult",
    "UpdateType",
    # Errors
    "MeldError",
]


# Lazy imports — only resolve when accessed
def __getattr__(name):
    if name == "Bin":
        from .bin import Bin

        return Bin
    if name in ("Config", "Version"):
        from .config import Config, Version

        return Config if name == "Config" else Version
    if name == "DirectoryMap":
        from .dirmap import DirectoryMap

        return DirectoryMap
    if name in ("PushResult", "MapPushResult", "UpdateType"):
        from .push import MapPushResult, PushResult, UpdateType

        return {
            "PushResult": PushResult,
            "MapPushResult": MapPushResult,
            "UpdateType": UpdateType,
        }[name]
    if name == "PullResult":
        from .pull import PullResult

        return PullResult
    if name == "MeldError":
        from .errors import MeldError

        return MeldError
    raise AttributeError(f"module 'meld' has no attribute {name!r}")
