from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, List, Tuple

from .errors import Diagnostic, InputError, Pos
from .yaml_subset import parse_int


_RE_CONST = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(-?0x[0-9a-fA-F]+|-?\d+)$")


def parse_consts(text: str, *, source: str = "<string>") -> Dict[str, int]:
    consts: Dict[str, int] = {}
    diagnostics: List[Diagnostic] = []
    for index, raw in enumerate(text.splitlines()):
        line = raw.strip()
        if line == "" or line.startswith("#"):
            continue
        m = _RE_CONST.match(line)
        if m is None:
            diagnostics.append(Diagnostic(Pos(source, index + 1), f"malformed const line: {line!r}"))
            continue
        name = m.group(1)
        try:
            value = parse_int(m.group(2))
        except ValueError:
            diagnostics.append(Diagnostic(Pos(source, index + 1), f"bad value {m.group(2)!r} for const {name}"))
            continue
        if name in consts and consts[name] != value:
            diagnostics.append(
                Diagnostic(Pos(source, index + 1), f"const {name} redefined ({consts[name]} vs {value})")
            )
            continue
        consts[name] = value
    if diagnostics:
        raise InputError(diagnostics)
    return consts


def load_glob(pattern: str, arch: str) -> Dict[str, int]:
    """Merge every `*.const` file matched by `pattern` for one architecture."""
    path = Path(pattern)
    files = sorted(path.parent.glob(path.name))
    if not files:
        raise InputError([Diagnostic(Pos(pattern), f"no const files matched for {arch}")])

    merged: Dict[str, Tuple[int, str]] = {}
    diagnostics: List[Diagnostic] = []
    for file in files:
        source = file.as_posix()
        try:
            consts = parse_consts(file.read_text(encoding="utf-8"), source=source)
        except OSError as e:
            diagnostics.append(Diagnostic(Pos(source), f"failed to read: {e}"))
            continue
        except UnicodeDecodeError as e:
            diagnostics.append(Diagnostic(Pos(source), f"not valid UTF-8: {e}"))
            continue
        except InputError as e:
            diagnostics.extend(e.diagnostics)
            continue
        for name, value in consts.items():
            prev = merged.get(name)
            if prev is not None and prev[0] != value:
                diagnostics.append(
                    Diagnostic(Pos(source), f"const {name} is {value}, but {prev[0]} in {prev[1]}")
                )
                continue
            merged[name] = (value, source)
    if diagnostics:
        raise InputError(diagnostics)
    return {name: value for name, (value, _src) in merged.items()}
