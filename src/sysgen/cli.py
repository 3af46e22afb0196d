from __future__ import annotations

import argparse
import gc
import sys
import tracemalloc
from pathlib import Path
from typing import Optional, Sequence

from .errors import OutputError, SysgenError
from .orchestrator import Config, run


def write_memprofile(path: Path) -> None:
    gc.collect()
    snapshot = tracemalloc.take_snapshot()
    tracemalloc.stop()
    try:
        snapshot.dump(str(path))
    except OSError as e:
        raise OutputError(f"could not write memory profile: {e}") from e


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="sysgen",
        description="Generate per-target syscall descriptions and executor syscall tables.",
    )
    parser.add_argument(
        "--repo-root",
        default=".",
        help="Directory holding sys/<os>/ descriptions and executor/ (defaults to the current directory).",
    )
    parser.add_argument("--memprofile", default="", help="Write a memory profile to the file.")
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.memprofile:
        tracemalloc.start()

    status = 0
    try:
        run(Config(root=Path(args.repo_root)))
    except SysgenError as e:
        print(f"sysgen: ERROR: {e}", file=sys.stderr)
        status = 2

    if args.memprofile:
        try:
            write_memprofile(Path(args.memprofile))
        except OutputError as e:
            print(f"sysgen: ERROR: {e}", file=sys.stderr)
            status = 2
    return status


if __name__ == "__main__":
    raise SystemExit(main())
