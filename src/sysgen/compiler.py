"""
Compiles a parsed description against one target's constants.

Structural problems (unknown types, bad arguments, redeclarations, recursive
struct layouts) are compile errors. A constant the target does not define is
not an error: the syscall needing it is dropped and the constant name is
recorded in `Program.unsupported`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from . import prog
from .description import Call, Description, FlagSet, Resource, Struct, TypeExpr
from .errors import CompileError, Diagnostic, Pos
from .targets import Target


_INT_SIZES = {"int8": 1, "int16": 2, "int32": 4, "int64": 8}
_DIRS = (prog.DIR_IN, prog.DIR_OUT, prog.DIR_INOUT)
_BUILTINS = set(_INT_SIZES) | {
    "intptr",
    "const",
    "flags",
    "len",
    "ptr",
    "buffer",
    "string",
    "filename",
    "array",
}


@dataclass
class _Ctx:
    missing: Set[str] = field(default_factory=set)
    keys: Set[prog.StructKey] = field(default_factory=set)
    siblings: Tuple[str, ...] = ()


@dataclass
class _StructInfo:
    desc: Optional[prog.StructDesc]
    missing: Set[str]
    keys: Set[prog.StructKey]


class _Compiler:
    def __init__(self, desc: Description, consts: Mapping[str, int], target: Target) -> None:
        self.desc = desc
        self.consts = consts
        self.target = target
        self.diagnostics: List[Diagnostic] = []
        self.unsupported: Set[str] = set()
        self.resources: Dict[str, Resource] = {}
        self.flags: Dict[str, FlagSet] = {}
        self.structs: Dict[str, Struct] = {}
        self.resource_descs: Dict[str, Optional[prog.ResourceDesc]] = {}
        self.struct_infos: Dict[prog.StructKey, _StructInfo] = {}
        self.in_progress: Set[prog.StructKey] = set()
        self.referenced: Set[str] = set()

    def error(self, pos: Pos, message: str) -> None:
        self.diagnostics.append(Diagnostic(pos, message))

    def declare(self) -> None:
        seen: Dict[str, Pos] = {}
        decls: List[Any] = [*self.desc.resources, *self.desc.flags, *self.desc.structs]
        for decl in decls:
            if decl.name in _BUILTINS:
                self.error(decl.pos, f"{decl.name} redeclares a builtin type")
                continue
            if decl.name in seen:
                self.error(decl.pos, f"{decl.name} redeclared, previously declared at {seen[decl.name]}")
                continue
            seen[decl.name] = decl.pos
            if isinstance(decl, Resource):
                self.resources[decl.name] = decl
            elif isinstance(decl, FlagSet):
                self.flags[decl.name] = decl
            else:
                self.structs[decl.name] = decl

        calls: Dict[str, Pos] = {}
        for call in self.desc.calls:
            if call.name in calls:
                self.error(call.pos, f"syscall {call.name} redeclared, previously declared at {calls[call.name]}")
            calls[call.name] = call.pos

    def const(self, value: Any, missing: Set[str]) -> int:
        if isinstance(value, int):
            return value
        if value not in self.consts:
            missing.add(value)
            return 0
        return self.consts[value]

    # Resources.

    def resource(self, name: str, chain: Tuple[str, ...] = ()) -> Optional[prog.ResourceDesc]:
        if name in self.resource_descs:
            return self.resource_descs[name]
        res = self.resources[name]
        if name in chain:
            self.error(res.pos, f"recursive resource {' -> '.join(chain + (name,))}")
            return None
        desc = self.build_resource(res, chain)
        self.resource_descs[name] = desc
        return desc

    def build_resource(self, res: Resource, chain: Tuple[str, ...]) -> Optional[prog.ResourceDesc]:
        base = res.base
        if base.args or base.value is not None:
            self.error(base.pos, f"bad resource base {base}")
            return None
        if base.ident in self.resources:
            parent = self.resource(base.ident, chain + (res.name,))
            if parent is None:
                return None
            kind, size = parent.kind + (res.name,), parent.size
        elif base.ident in _INT_SIZES or base.ident == "intptr":
            kind, size = (res.name,), _INT_SIZES.get(base.ident, self.target.ptr_size)
        else:
            self.error(base.pos, f"resource {res.name} has bad base {base}")
            return None
        values: List[int] = []
        for v in res.values:
            if isinstance(v, str) and v not in self.consts:
                self.unsupported.add(v)
                continue
            values.append(self.const(v, self.unsupported))
        return prog.ResourceDesc(name=res.name, kind=kind, size=size, values=tuple(values))

    # Types.

    def int_size(self, expr: Optional[TypeExpr], default: int) -> int:
        if expr is None:
            return default
        if expr.ident == "intptr" and not expr.args:
            return self.target.ptr_size
        if expr.ident in _INT_SIZES and not expr.args:
            return _INT_SIZES[expr.ident]
        self.error(expr.pos, f"expected integer base type, got {expr}")
        return default

    def direction(self, expr: TypeExpr) -> Optional[str]:
        arg = expr.args[0]
        if arg.args or arg.ident not in _DIRS:
            self.error(expr.pos, f"bad direction {arg}, expect in/out/inout")
            return None
        return arg.ident

    def nargs(self, expr: TypeExpr, lo: int, hi: int) -> bool:
        if lo <= len(expr.args) <= hi:
            return True
        want = str(lo) if lo == hi else f"{lo}..{hi}"
        self.error(expr.pos, f"{expr.ident} expects {want} arguments, got {len(expr.args)}")
        return False

    def type(self, expr: TypeExpr, direction: str, fld_name: str, ctx: _Ctx, *, in_ptr: bool = False) -> Any:
        ident = expr.ident
        if expr.value is not None:
            self.error(expr.pos, f"unexpected number {expr.value} in place of a type")
            return None
        if ident in _INT_SIZES or ident == "intptr":
            if not self.nargs(expr, 0, 0):
                return None
            return prog.IntType(fld_name=fld_name, size=self.int_size(expr, 0))
        if ident == "const":
            if not self.nargs(expr, 1, 2):
                return None
            arg = expr.args[0]
            if arg.args:
                self.error(arg.pos, f"bad const value {arg}")
                return None
            val = self.const(arg.value if arg.value is not None else arg.ident, ctx.missing)
            size = self.int_size(expr.args[1] if len(expr.args) > 1 else None, self.target.ptr_size)
            return prog.ConstType(fld_name=fld_name, size=size, val=val)
        if ident == "flags":
            if not self.nargs(expr, 1, 2):
                return None
            name = expr.args[0].ident
            if name not in self.flags:
                self.error(expr.pos, f"unknown flags {expr.args[0]}")
                return None
            vals = tuple(self.const(v, ctx.missing) for v in self.flags[name].values)
            size = self.int_size(expr.args[1] if len(expr.args) > 1 else None, self.target.ptr_size)
            return prog.FlagsType(fld_name=fld_name, size=size, name=name, vals=vals)
        if ident == "len":
            if not self.nargs(expr, 1, 2):
                return None
            buf = expr.args[0].ident
            if buf not in ctx.siblings or buf == fld_name:
                self.error(expr.pos, f"len target {expr.args[0]} is not a sibling field")
                return None
            size = self.int_size(expr.args[1] if len(expr.args) > 1 else None, self.target.ptr_size)
            return prog.LenType(fld_name=fld_name, size=size, buf=buf)
        if ident == "ptr":
            if not self.nargs(expr, 2, 2):
                return None
            pdir = self.direction(expr)
            if pdir is None:
                return None
            elem = self.type(expr.args[1], pdir, "", ctx, in_ptr=True)
            if elem is None:
                return None
            return prog.PtrType(fld_name=fld_name, size=self.target.ptr_size, dir=pdir, elem=elem)
        if ident == "buffer":
            if not self.nargs(expr, 1, 1):
                return None
            pdir = self.direction(expr)
            if pdir is None:
                return None
            elem = prog.BufferType(kind="blob")
            return prog.PtrType(fld_name=fld_name, size=self.target.ptr_size, dir=pdir, elem=elem)
        if ident in ("string", "filename"):
            if not self.nargs(expr, 0, 0):
                return None
            if not in_ptr:
                self.error(expr.pos, f"{ident} can only be pointed to")
                return None
            return prog.BufferType(fld_name=fld_name, kind=ident)
        if ident == "array":
            if not self.nargs(expr, 1, 1):
                return None
            elem = self.type(expr.args[0], direction, "", ctx)
            if elem is None:
                return None
            return prog.ArrayType(fld_name=fld_name, elem=elem)
        if ident in self.resources:
            if not self.nargs(expr, 0, 0):
                return None
            self.referenced.add(ident)
            desc = self.resource(ident)
            if desc is None:
                return None
            return prog.ResourceType(fld_name=fld_name, size=desc.size, desc=ident)
        if ident in self.structs:
            if not self.nargs(expr, 0, 0):
                return None
            self.referenced.add(ident)
            key = prog.StructKey(name=ident, dir=direction)
            ctx.keys.add(key)
            return prog.StructType(fld_name=fld_name, key=key)
        if ident in self.flags:
            self.error(expr.pos, f"flags {ident} must be used as flags[{ident}]")
            return None
        self.error(expr.pos, f"unknown type {expr}")
        return None

    # Structs.

    def layout_of(self, typ: Any, pos: Pos) -> Tuple[int, int, bool]:
        """Returns (size, align, varlen) of a field type."""
        if isinstance(typ, prog.BufferType):
            return 0, 1, True
        if isinstance(typ, prog.ArrayType):
            _size, align, _varlen = self.layout_of(typ.elem, pos)
            return 0, align, True
        if isinstance(typ, prog.StructType):
            info = self.struct(typ.key, pos)
            if info.desc is None:
                return 0, 1, False
            return info.desc.size, info.desc.align, info.desc.varlen
        return typ.size, typ.size, False

    def struct(self, key: prog.StructKey, pos: Pos) -> _StructInfo:
        if key in self.struct_infos:
            return self.struct_infos[key]
        st = self.structs[key.name]
        if key in self.in_progress:
            self.error(pos, f"recursive struct {key.name} embeds itself by value")
            return _StructInfo(None, set(), set())
        self.in_progress.add(key)
        ctx = _Ctx(siblings=tuple(f.name for f in st.fields))
        fields: List[Any] = []
        names: Set[str] = set()
        ok = True
        for f in st.fields:
            if f.name in names:
                self.error(f.pos, f"duplicate field {f.name} in {st.name}")
                ok = False
                continue
            names.add(f.name)
            typ = self.type(f.type, key.dir, f.name, ctx)
            if typ is None:
                ok = False
                continue
            fields.append(typ)
        desc = None
        if ok:
            desc = self.build_struct(st, key, fields)
        self.in_progress.discard(key)
        info = _StructInfo(desc, ctx.missing, ctx.keys)
        self.struct_infos[key] = info
        return info

    def build_struct(self, st: Struct, key: prog.StructKey, fields: List[Any]) -> prog.StructDesc:
        offset = 0
        size = 0
        align = 1
        varlen = False
        for i, typ in enumerate(fields):
            fsize, falign, fvarlen = self.layout_of(typ, st.pos)
            align = max(align, falign)
            if fvarlen and not st.is_union and i != len(fields) - 1:
                self.error(st.fields[i].pos, f"variable-length field {st.fields[i].name} must be last in {st.name}")
            varlen = varlen or fvarlen
            if st.is_union:
                size = max(size, fsize)
            else:
                offset = (offset + falign - 1) // falign * falign + fsize
        if not st.is_union:
            size = offset
        size = (size + align - 1) // align * align
        return prog.StructDesc(
            key=key,
            fields=tuple(fields),
            is_union=st.is_union,
            size=0 if varlen else size,
            align=align,
            varlen=varlen,
        )

    # Syscalls.

    def call(self, call: Call) -> Tuple[Optional[prog.Syscall], Set[str], Set[prog.StructKey]]:
        ctx = _Ctx(siblings=tuple(a.name for a in call.args))
        args: List[Any] = []
        ok = True
        for arg in call.args:
            typ = self.type(arg.type, prog.DIR_IN, arg.name, ctx)
            if isinstance(typ, (prog.StructType, prog.ArrayType)):
                self.error(arg.pos, f"{arg.name}: {arg.type} can not be passed by value")
                typ = None
            if typ is None:
                ok = False
                continue
            args.append(typ)
        ret = None
        if call.ret is not None:
            ret = self.type(call.ret, prog.DIR_OUT, "ret", _Ctx())
            if not isinstance(ret, (prog.ResourceType, prog.IntType)):
                if ret is not None:
                    self.error(call.pos, f"{call.name}: return type must be a resource or integer")
                ok = False

        nr = 0
        if self.target.syscall_numbers:
            if call.call_name.startswith(prog.PSEUDO_PREFIX):
                nr = prog.PSEUDO_NR
            else:
                nr = self.const(f"__NR_{call.call_name}", ctx.missing)

        missing = set(ctx.missing)
        closure: Set[prog.StructKey] = set()
        pending = list(ctx.keys)
        while pending:
            key = pending.pop()
            if key in closure:
                continue
            closure.add(key)
            info = self.struct(key, call.pos)
            missing |= info.missing
            pending.extend(info.keys)

        if not ok:
            return None, set(), set()
        syscall = prog.Syscall(
            nr=nr,
            name=call.name,
            call_name=call.call_name,
            args=tuple(args),
            ret=ret,
        )
        return syscall, missing, closure

    def compile(self) -> prog.Program:
        self.declare()
        for name in self.resources:
            self.resource(name)

        syscalls: List[prog.Syscall] = []
        used: Set[prog.StructKey] = set()
        for call in sorted(self.desc.calls, key=lambda c: c.name):
            syscall, missing, closure = self.call(call)
            if syscall is None:
                continue
            if missing:
                self.unsupported |= missing
                continue
            syscalls.append(syscall)
            used |= closure

        for st in self.desc.structs:
            if st.name not in self.referenced:
                self.error(st.pos, f"unused struct {st.name}")

        if self.diagnostics:
            raise CompileError(self.diagnostics)

        return prog.Program(
            syscalls=[replace(c, id=i) for i, c in enumerate(syscalls)],
            resources=[d for _name, d in sorted(self.resource_descs.items()) if d is not None],
            struct_descs=[self.struct_infos[key].desc for key in sorted(used)],
            unsupported=set(self.unsupported),
        )


def compile_description(desc: Description, consts: Mapping[str, int], target: Target) -> prog.Program:
    return _Compiler(desc, consts, target).compile()
