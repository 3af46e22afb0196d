"""
Description files: syscalls, resources, flag sets, structs and unions.

A description is a YAML-subset document with optional top-level lists
`resources`, `flags`, `structs`, `unions` and `syscalls`. Types are written as
expressions such as `int32`, `ptr[in, stat]` or `const[AT_FDCWD, intptr]`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional, Tuple, Union

from . import yaml_subset
from .errors import Diagnostic, InputError, Pos


_RE_IDENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_RE_CALL = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\$[A-Za-z0-9_]+)?$")
_RE_TOKEN = re.compile(r"\s*(?:(-?0x[0-9a-fA-F]+|-?\d+)|([A-Za-z_][A-Za-z0-9_]*)|(.))")

_SECTIONS = ("resources", "flags", "structs", "unions", "syscalls")


@dataclass(frozen=True)
class TypeExpr:
    pos: Pos
    ident: str = ""
    args: Tuple["TypeExpr", ...] = ()
    value: Optional[int] = None

    def __str__(self) -> str:
        if self.value is not None:
            return str(self.value)
        if not self.args:
            return self.ident
        return f"{self.ident}[{', '.join(str(a) for a in self.args)}]"


@dataclass(frozen=True)
class Field:
    pos: Pos
    name: str
    type: TypeExpr


@dataclass(frozen=True)
class Resource:
    pos: Pos
    name: str
    base: TypeExpr
    values: Tuple[Union[int, str], ...] = ()


@dataclass(frozen=True)
class FlagSet:
    pos: Pos
    name: str
    values: Tuple[Union[int, str], ...]


@dataclass(frozen=True)
class Struct:
    pos: Pos
    name: str
    fields: Tuple[Field, ...]
    is_union: bool = False


@dataclass(frozen=True)
class Call:
    pos: Pos
    name: str
    args: Tuple[Field, ...]
    ret: Optional[TypeExpr] = None

    @property
    def call_name(self) -> str:
        return self.name.split("$", 1)[0]


@dataclass
class Description:
    resources: List[Resource] = field(default_factory=list)
    flags: List[FlagSet] = field(default_factory=list)
    structs: List[Struct] = field(default_factory=list)
    calls: List[Call] = field(default_factory=list)

    def extend(self, other: "Description") -> None:
        self.resources.extend(other.resources)
        self.flags.extend(other.flags)
        self.structs.extend(other.structs)
        self.calls.extend(other.calls)


def parse_type(text: str, pos: Pos) -> TypeExpr:
    tokens: List[Tuple[str, str]] = []
    for m in _RE_TOKEN.finditer(text.strip()):
        num, ident, punct = m.groups()
        if num is not None:
            tokens.append(("num", num))
        elif ident is not None:
            tokens.append(("ident", ident))
        elif punct is not None and not punct.isspace():
            tokens.append(("punct", punct))
    if not tokens:
        raise InputError([Diagnostic(pos, "empty type expression")])

    index = 0

    def bad(message: str) -> InputError:
        return InputError([Diagnostic(pos, f"{message} in type {text!r}")])

    def expr() -> TypeExpr:
        nonlocal index
        if index >= len(tokens):
            raise bad("unexpected end")
        kind, tok = tokens[index]
        index += 1
        if kind == "num":
            try:
                return TypeExpr(pos, value=yaml_subset.parse_int(tok))
            except ValueError:
                raise bad(f"bad number {tok!r}") from None
        if kind != "ident":
            raise bad(f"unexpected {tok!r}")
        if index >= len(tokens) or tokens[index] != ("punct", "["):
            return TypeExpr(pos, ident=tok)
        index += 1
        args = [expr()]
        while index < len(tokens) and tokens[index] == ("punct", ","):
            index += 1
            args.append(expr())
        if index >= len(tokens) or tokens[index] != ("punct", "]"):
            raise bad("missing ']'")
        index += 1
        return TypeExpr(pos, ident=tok, args=tuple(args))

    result = expr()
    if index != len(tokens):
        raise bad("trailing tokens")
    return result


class _Builder:
    def __init__(self, source: str) -> None:
        self.source = source
        self.diagnostics: List[Diagnostic] = []
        self.desc = Description()

    def pos(self, node: Any) -> Pos:
        return Pos(self.source, getattr(node, "line", 0))

    def error(self, node: Any, message: str) -> None:
        self.diagnostics.append(Diagnostic(self.pos(node), message))

    def entries(self, doc: dict, section: str) -> List[dict]:
        items = doc.get(section, [])
        if not isinstance(items, list):
            self.error(doc, f"{section} must be a list")
            return []
        out = []
        for item in items:
            if not isinstance(item, dict):
                self.error(items, f"{section} entries must be mappings")
                continue
            out.append(item)
        return out

    def name(self, item: dict, pattern: "re.Pattern[str]" = _RE_IDENT) -> Optional[str]:
        name = item.get("name")
        if not isinstance(name, str) or not pattern.match(name):
            self.error(item, f"bad or missing name {name!r}")
            return None
        return name

    def type(self, item: dict, key: str, *, required: bool = True) -> Optional[TypeExpr]:
        raw = item.get(key)
        if raw is None and not required:
            return None
        if not isinstance(raw, str):
            self.error(item, f"{key} must be a type expression, got {raw!r}")
            return None
        try:
            return parse_type(raw, self.pos(item))
        except InputError as e:
            self.diagnostics.extend(e.diagnostics)
            return None

    def values(self, item: dict) -> Optional[Tuple[Union[int, str], ...]]:
        raw = item.get("values", [])
        if not isinstance(raw, list):
            raw = [raw]
        for v in raw:
            if isinstance(v, bool) or not isinstance(v, (int, str)):
                self.error(item, f"bad value {v!r}")
                return None
        return tuple(raw)

    def fields(self, item: dict, key: str) -> Optional[Tuple[Field, ...]]:
        raw = item.get(key, [])
        if not isinstance(raw, list):
            self.error(item, f"{key} must be a list")
            return None
        out: List[Field] = []
        ok = True
        for f in raw:
            if not isinstance(f, dict):
                self.error(raw, f"{key} entries must be mappings")
                ok = False
                continue
            name = self.name(f)
            typ = self.type(f, "type")
            if name is None or typ is None:
                ok = False
                continue
            out.append(Field(self.pos(f), name, typ))
        return tuple(out) if ok else None

    def build(self, doc: dict) -> None:
        for key in doc:
            if key not in _SECTIONS:
                self.error(doc, f"unknown section {key!r}")

        for item in self.entries(doc, "resources"):
            name = self.name(item)
            base = self.type(item, "base")
            values = self.values(item)
            if name is not None and base is not None and values is not None:
                self.desc.resources.append(Resource(self.pos(item), name, base, values))

        for item in self.entries(doc, "flags"):
            name = self.name(item)
            values = self.values(item)
            if name is not None and values is not None:
                if not values:
                    self.error(item, f"flags {name} has no values")
                    continue
                self.desc.flags.append(FlagSet(self.pos(item), name, values))

        for section, is_union in (("structs", False), ("unions", True)):
            for item in self.entries(doc, section):
                name = self.name(item)
                fields = self.fields(item, "fields")
                if name is not None and fields is not None:
                    if not fields:
                        self.error(item, f"{name} has no fields")
                        continue
                    self.desc.structs.append(Struct(self.pos(item), name, fields, is_union))

        for item in self.entries(doc, "syscalls"):
            name = self.name(item, _RE_CALL)
            args = self.fields(item, "args")
            ret = self.type(item, "ret", required=False)
            if name is None or args is None or ("ret" in item and ret is None):
                continue
            self.desc.calls.append(Call(self.pos(item), name, args, ret))


def parse_text(text: str, *, source: str = "<string>") -> Description:
    doc = yaml_subset.parse(text, source=source)
    builder = _Builder(source)
    builder.build(doc)
    if builder.diagnostics:
        raise InputError(builder.diagnostics)
    return builder.desc


def parse_glob(pattern: str) -> Description:
    path = Path(pattern)
    files = sorted(path.parent.glob(path.name))
    if not files:
        raise InputError([Diagnostic(Pos(pattern), "no description files matched")])

    desc = Description()
    diagnostics: List[Diagnostic] = []
    for file in files:
        try:
            text = file.read_text(encoding="utf-8")
        except OSError as e:
            diagnostics.append(Diagnostic(Pos(file.as_posix()), f"failed to read: {e}"))
            continue
        except UnicodeDecodeError as e:
            diagnostics.append(Diagnostic(Pos(file.as_posix()), f"not valid UTF-8: {e}"))
            continue
        try:
            desc.extend(parse_text(text, source=file.as_posix()))
        except InputError as e:
            diagnostics.extend(e.diagnostics)
    if diagnostics:
        raise InputError(diagnostics)
    return desc
