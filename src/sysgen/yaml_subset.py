"""
Indentation-based YAML subset used by the description files.

Supports nested mappings, block lists, inline `[a, b]` lists, quoted strings,
booleans and decimal/hex integers. Every mapping and list produced remembers
the 1-based line it started on so later stages can report positions.
"""

from __future__ import annotations

import re
from typing import Any, List, Optional, Sequence, Tuple, Union

from .errors import Diagnostic, InputError, Pos


_RE_INT = re.compile(r"^-?\d+$")
_RE_HEX = re.compile(r"^0x[0-9a-fA-F]+$")


class Block(dict):
    line = 0


class BlockList(list):
    line = 0


def parse_int(text: str) -> int:
    """Decimal, `0x` hex or leading-zero octal, as written in C headers. Raises ValueError."""
    s = text.strip()
    digits = s[1:] if s.startswith("-") else s
    if digits[:2].lower() == "0x":
        return int(s, 16)
    if len(digits) > 1 and digits.startswith("0"):
        return int(s, 8)
    return int(s, 10)


def _fail(source: str, line: int, message: str) -> InputError:
    return InputError([Diagnostic(Pos(source, line), message)])


def _strip_comment_line(line: str) -> str:
    stripped = line.lstrip()
    if stripped.startswith("#"):
        return ""
    return line.rstrip("\r\n")


def parse_scalar(text: str) -> Any:
    s = text.strip()
    if s == "":
        return ""
    if s.startswith("'") and s.endswith("'") and len(s) >= 2:
        return s[1:-1]
    if s.startswith('"') and s.endswith('"') and len(s) >= 2:
        return s[1:-1]
    lower = s.lower()
    if lower == "true":
        return True
    if lower == "false":
        return False
    if s.startswith("[") and s.endswith("]"):
        inner = s[1:-1].strip()
        if inner == "":
            return []
        parts = [p.strip() for p in inner.split(",")]
        return [parse_scalar(p) for p in parts if p != ""]
    if _RE_HEX.match(s):
        return int(s, 16)
    if _RE_INT.match(s):
        return int(s, 10)
    return s


def _split_key_value(line: str, *, source: str, lineno: int) -> Tuple[str, Optional[str]]:
    if ":" not in line:
        raise _fail(source, lineno, f"invalid mapping line (missing ':'): {line!r}")
    key, rest = line.split(":", 1)
    key = key.strip()
    if key == "":
        raise _fail(source, lineno, f"invalid mapping line (empty key): {line!r}")
    rest = rest.strip()
    if rest == "":
        return key, None
    return key, rest


def _next_significant_line(lines: Sequence[str], start_index: int) -> Optional[str]:
    for i in range(start_index, len(lines)):
        cleaned = _strip_comment_line(lines[i])
        if cleaned.strip() == "":
            continue
        return cleaned
    return None


def _nested(next_line: str, lineno: int) -> Union[Block, BlockList]:
    node: Union[Block, BlockList] = BlockList() if next_line.strip().startswith("-") else Block()
    node.line = lineno
    return node


def parse(text: str, *, source: str = "<string>") -> Block:
    lines = text.splitlines()
    root = Block()
    root.line = 1
    stack: List[Tuple[int, Union[Block, BlockList]]] = [(0, root)]

    def current_container(expected_indent: int, lineno: int) -> Union[Block, BlockList]:
        while stack and stack[-1][0] > expected_indent:
            stack.pop()
        if not stack or stack[-1][0] != expected_indent:
            raise _fail(source, lineno, f"bad indentation at indent={expected_indent}")
        return stack[-1][1]

    for index, raw in enumerate(lines):
        lineno = index + 1
        cleaned = _strip_comment_line(raw)
        if cleaned.strip() == "":
            continue
        indent = len(cleaned) - len(cleaned.lstrip(" "))
        if indent % 2 != 0:
            raise _fail(source, lineno, "indentation must be multiple of 2 spaces")

        content = cleaned.strip()
        container = current_container(indent, lineno)

        if content == "-" or content.startswith("- "):
            if not isinstance(container, list):
                raise _fail(source, lineno, "list item in non-list context")
            item_text = content[1:].strip()
            if item_text == "":
                next_line = _next_significant_line(lines, index + 1)
                if next_line is None:
                    raise _fail(source, lineno, "'-' with no value at end of file")
                next_indent = len(next_line) - len(next_line.lstrip(" "))
                if next_indent <= indent:
                    raise _fail(source, lineno, "'-' with no nested block")
                node = _nested(next_line, lineno)
                container.append(node)
                stack.append((indent + 2, node))
                continue

            if ":" in item_text and not item_text.startswith(("'", '"')):
                key, rest = _split_key_value(item_text, source=source, lineno=lineno)
                item = Block()
                item.line = lineno
                container.append(item)
                stack.append((indent + 2, item))
                if rest is not None:
                    item[key] = parse_scalar(rest)
                    continue
                next_line = _next_significant_line(lines, index + 1)
                if next_line is None or len(next_line) - len(next_line.lstrip(" ")) <= indent + 2:
                    raise _fail(source, lineno, f"key {key!r} missing nested block")
                child = _nested(next_line, lineno)
                item[key] = child
                stack.append((indent + 4, child))
                continue

            container.append(parse_scalar(item_text))
            continue

        if not isinstance(container, dict):
            raise _fail(source, lineno, "mapping entry in non-dict context")
        key, rest = _split_key_value(content, source=source, lineno=lineno)
        if key in container:
            raise _fail(source, lineno, f"duplicate key {key!r}")
        if rest is None:
            next_line = _next_significant_line(lines, index + 1)
            if next_line is None:
                raise _fail(source, lineno, f"key {key!r} missing nested block at end of file")
            next_indent = len(next_line) - len(next_line.lstrip(" "))
            if next_indent <= indent:
                raise _fail(source, lineno, f"key {key!r} missing nested block")
            node = _nested(next_line, lineno)
            container[key] = node
            stack.append((indent + 2, node))
            continue

        container[key] = parse_scalar(rest)

    return root
