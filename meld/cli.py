"""
Meld CLI

Every command prints structured JSON when --json is passed; human
readable output is the default. The bin is named with --bin/-b or the
MELD_BIN environment variable.

Usage:
    meld -b BIN init [--parents] [--force]
    meld -b BIN push PATH [--subset S] [--family F] [--tag T]
    meld -b BIN pull PATH [--tag T] [--version N] [--recent]
    meld -b BIN history PATH
    meld -b BIN status
"""

import argparse
import json
import logging
import os
import sys
from contextlib import contextmanager
from pathlib import Path

import meld as _meld_pkg

from . import mapper
from .bin import Bin
from .errors import FileNotFound, MeldError, TagNotFound, VersionNotFound
from .hashing import hash_path
from .pull import pull
from .push import MapPushResult, UpdateType, push

BIN_ENV_VAR = "MELD_BIN"


@contextmanager
def open_bin(args):
    """Open a Bin with guaranteed cleanup on any exit path."""
    meld_bin = Bin.open(_bin_path(args))
    try:
        yield meld_bin
    finally:
        meld_bin.close()


def _bin_path(args) -> Path:
    path = args.bin or os.environ.get(BIN_ENV_VAR)
    if not path:
        raise MeldError(f"No bin given; pass --bin or set {BIN_ENV_VAR}")
    return Path(path).expanduser()


def short_hash(h: str) -> str:
    return h[:12] if h else "none"


def print_json(data):
    print(json.dumps(data, indent=2, default=str))


def get_verbosity(args) -> int:
    """Return verbosity level: 0=quiet, 1=normal, 2=verbose."""
    if getattr(args, "json", False):
        return 1
    if getattr(args, "verbose", False):
        return 2
    if getattr(args, "quiet", False):
        return 0
    return 1


def configure_logging(verbosity: int):
    level = {0: logging.ERROR, 1: logging.WARNING, 2: logging.INFO}[verbosity]
    logging.basicConfig(
        level=level,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


# ── Commands ──────────────────────────────────────────────────


def cmd_init(args):
    v = get_verbosity(args)
    path = _bin_path(args)
    with Bin.init(path, force=args.force, parents=args.parents) as meld_bin:
        if args.json:
            print_json({"bin": str(meld_bin.path)})
        elif v > 0:
            print(f"✓ Initialized meld bin at {meld_bin.path}")


def cmd_push(args):
    v = get_verbosity(args)
    with open_bin(args) as meld_bin:
        result = push(
            meld_bin, args.path, subset=args.subset, family=args.family, tag=args.tag
        )

        if args.json:
            print_json(result.to_dict())
            return
        if v == 0:
            return

        members = result.members if isinstance(result, MapPushResult) else [result]
        for m in members:
            if m.update != UpdateType.NONE or m.reclassified or v >= 2:
                extra = " (reclassified)" if m.reclassified else ""
                print(f"  {m.update.value:<8} v{m.version:<4} {m.path}{extra}")

        if isinstance(result, MapPushResult):
            if result.snapshot_created:
                print(f"✓ Pushed {args.path} as map version {result.version}")
            else:
                print(f"✓ Pushed {args.path}; tree unchanged, no new map version")
        else:
            print(f"✓ Pushed {args.path} at version {result.version}")


def cmd_pull(args):
    v = get_verbosity(args)
    with open_bin(args) as meld_bin:
        results = pull(
            meld_bin, args.path, tag=args.tag, version=args.version, allow_recent=args.recent
        )

        if args.json:
            print_json([r.to_dict() for r in results])
            return
        if v == 0:
            return
        restored = [r for r in results if r.restored]
        for r in results:
            if r.restored or v >= 2:
                state = "restored" if r.restored else "current"
                print(f"  {state:<8} v{r.version:<4} {r.path}")
        print(f"✓ Pulled {args.path} ({len(restored)} of {len(results)} restored)")


def cmd_history(args):
    v = get_verbosity(args)
    with open_bin(args) as meld_bin:
        map_path = mapper.to_canonical(args.path)
        identity = meld_bin.db.config_exists(map_path)
        if identity is None:
            raise FileNotFound(f"Config not found in bin: {map_path}")

        config = meld_bin.db.get_config(identity)
        versions = meld_bin.db.list_versions(identity)
        dmap = meld_bin.db.get_current_map(hash_path(map_path))

        if args.json:
            print_json({
                "config": config.to_dict(),
                "versions": [ver.to_dict() for ver in versions],
                "map_version": dmap.ver if dmap else None,
            })
            return

        print(f"Config:  {config.map_path}")
        print(f"Blob:    {identity if v >= 2 else short_hash(identity)}")
        if config.subset or config.family:
            print(f"Subset:  {config.subset or '-'}")
            print(f"Family:  {config.family or '-'}")
        if dmap:
            print(f"Map:     version {dmap.ver}")
        print()
        for ver in reversed(versions):
            content = ver.data_hash if v >= 2 else short_hash(ver.data_hash)
            tag = f"  [{ver.tag}]" if ver.tag else ""
            print(f"  v{ver.ver:<4} {content}{tag}")


def cmd_status(args):
    with open_bin(args) as meld_bin:
        stats = meld_bin.stats()
        if args.json:
            print_json(stats)
            return
        rows = stats["rows"]
        print(f"Bin:       {stats['path']}")
        print(f"Configs:   {rows['configs']}")
        print(f"Versions:  {rows['versions']}")
        print(f"Maps:      {rows['maps']} ({stats['manifests']} manifests)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="meld",
        description="meld — local configuration version store",
    )
    ver = _meld_pkg.__version__
    parser.add_argument("--version", "-V", action="version", version=f"meld {ver}")
    parser.add_argument(
        "--bin", "-b", default=None, help=f"Path to the meld bin (default: ${BIN_ENV_VAR})"
    )
    parser.add_argument("--json", "-j", action="store_true", help="JSON output")

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    verbosity.add_argument("--quiet", "-q", action="store_true", help="Quiet output")

    sub = parser.add_subparsers(dest="command")

    # init
    p = sub.add_parser("init", help="Create a new bin")
    p.add_argument(
        "--parents", "-p", action="store_true", help="Make parent directories as needed"
    )
    p.add_argument(
        "--force", "-f", action="store_true", help="Delete and re-create an existing bin"
    )
    p.set_defaults(func=cmd_init)

    # push
    p = sub.add_parser("push", help="Push a file or directory to the bin")
    p.add_argument("path", help="Config file/folder to push")
    p.add_argument("--subset", "-s", default="", help="Config subset")
    p.add_argument("--family", "-f", default="", help="Config family")
    p.add_argument("--tag", "-t", default="", help="Config tag")
    p.set_defaults(func=cmd_push)

    # pull
    p = sub.add_parser("pull", help="Restore a file or directory from the bin")
    p.add_argument("path", help="Config file/folder to pull")
    p.add_argument("--tag", "-t", default="", help="Pull the version with this tag")
    p.add_argument("--version", "-n", type=int, default=0, help="Pull a specific version")
    p.add_argument(
        "--recent", "-r", action="store_true",
        help="Fall back to the most recent version if the tag/version is not found",
    )
    p.set_defaults(func=cmd_pull)

    # history
    p = sub.add_parser("history", help="Show the version history of a path")
    p.add_argument("path")
    p.set_defaults(func=cmd_history)

    # status
    p = sub.add_parser("status", help="Show bin status")
    p.set_defaults(func=cmd_status)

    return parser


def _error_hint(e: Exception) -> str | None:
    """Return a hint for common failures, or None."""
    if isinstance(e, (TagNotFound, VersionNotFound)):
        return "Hint: Use 'meld history PATH' to list versions, or pass --recent."
    if isinstance(e, FileNotFound):
        return "Hint: The path has not been pushed to this bin yet."
    return None


def main():
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    configure_logging(get_verbosity(args))

    try:
        args.func(args)
    except (MeldError, OSError, ValueError) as e:
        if args.json:
            print_json({"error": str(e)})
        else:
            print(f"Error: {e}", file=sys.stderr)
            hint = _error_hint(e)
            if hint:
                print(f"  {hint}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
