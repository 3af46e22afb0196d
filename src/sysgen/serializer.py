"""
Deterministic Python-literal encoding of composite values.

Dataclasses are written as constructor calls naming only the fields that
differ from their declared defaults. Dict keys and set members are sorted, so
the output never depends on insertion or hash order.
"""

from __future__ import annotations

import dataclasses
from typing import Any, List

INDENT = "    "


def _is_scalar(node: Any) -> bool:
    return node is None or isinstance(node, (bool, int, str))


def _scalar(node: Any) -> str:
    if node is None or isinstance(node, bool):
        return repr(node)
    if isinstance(node, int):
        return str(node)
    return repr(node)


def _fields(node: Any) -> List[tuple]:
    out = []
    for f in dataclasses.fields(node):
        value = getattr(node, f.name)
        if f.default is not dataclasses.MISSING and value == f.default:
            continue
        if f.default_factory is not dataclasses.MISSING and value == f.default_factory():
            continue
        out.append((f.name, value))
    return out


def _is_inline(node: Any) -> bool:
    if _is_scalar(node):
        return True
    if dataclasses.is_dataclass(node) and not isinstance(node, type):
        return all(_is_scalar(v) for _k, v in _fields(node))
    if isinstance(node, (list, tuple, set, frozenset)):
        return all(_is_scalar(v) for v in node)
    if isinstance(node, dict):
        return all(_is_scalar(v) for v in node.values())
    return False


def _write(node: Any, indent: int) -> str:
    if _is_scalar(node):
        return _scalar(node)

    tab = INDENT * indent
    inner = INDENT * (indent + 1)
    inline = _is_inline(node)

    if dataclasses.is_dataclass(node) and not isinstance(node, type):
        name = type(node).__name__
        items = [f"{k}={_write(v, indent + 1)}" for k, v in _fields(node)]
        if inline:
            return f"{name}({', '.join(items)})"
        return f"{name}(\n" + "".join(f"{inner}{item},\n" for item in items) + f"{tab})"

    if isinstance(node, dict):
        keys = sorted(node)
        items = [f"{_scalar(k)}: {_write(node[k], indent + 1)}" for k in keys]
        if inline:
            return "{" + ", ".join(items) + "}"
        return "{\n" + "".join(f"{inner}{item},\n" for item in items) + f"{tab}}}"

    if isinstance(node, (set, frozenset)):
        node = sorted(node)

    if isinstance(node, (list, tuple)):
        open_, close = ("(", ")") if isinstance(node, tuple) else ("[", "]")
        if not node:
            return open_ + close
        items = [_write(v, indent + 1) for v in node]
        if inline:
            if isinstance(node, tuple) and len(items) == 1:
                return f"({items[0]},)"
            return open_ + ", ".join(items) + close
        return f"{open_}\n" + "".join(f"{inner}{item},\n" for item in items) + f"{tab}{close}"

    raise TypeError(f"Unsupported value type for serialization: {type(node)!r}")


def write(value: Any) -> str:
    return _write(value, 0)
