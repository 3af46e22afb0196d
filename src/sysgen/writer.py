from __future__ import annotations

import ast
from pathlib import Path
from typing import List, Sequence

from .emitter import AUTOGENERATED
from .errors import OutputError


def format_source(data: bytes, *, filename: str = "<generated>") -> bytes:
    """
    Canonical form of a generated module: must parse, no trailing whitespace,
    no consecutive blank lines, exactly one final newline.
    """
    try:
        text = data.decode("utf-8")
        ast.parse(text, filename=filename)
    except (UnicodeDecodeError, SyntaxError) as e:
        print(data.decode("utf-8", errors="replace"))
        raise OutputError(f"failed to format output {filename}: {e}") from e

    out: List[str] = []
    for raw in text.splitlines():
        line = raw.rstrip()
        if line == "" and (not out or out[-1] == ""):
            continue
        out.append(line)
    while out and out[-1] == "":
        out.pop()
    return ("\n".join(out) + "\n").encode("utf-8")


def write_file(path: Path, data: bytes) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as e:
        raise OutputError(f"failed to create output file {path.as_posix()}: {e}") from e


def write_source(path: Path, data: bytes) -> bool:
    """Writes the canonicalized module only if it differs from what is on disk."""
    src = format_source(data, filename=path.as_posix())
    try:
        old = path.read_bytes()
    except FileNotFoundError:
        old = None
    except OSError as e:
        raise OutputError(f"failed to read {path.as_posix()}: {e}") from e
    if old == src:
        return False
    write_file(path, src)
    return True


def executor_header_path(root: Path, os_name: str) -> Path:
    return root / "executor" / f"syscalls_{os_name}.h"


def write_executor_syscalls(root: Path, os_name: str, archs: Sequence[bytes]) -> Path:
    path = executor_header_path(root, os_name)
    data = f"// {AUTOGENERATED}\n\n".encode("utf-8") + b"".join(archs)
    write_file(path, data)
    return path
