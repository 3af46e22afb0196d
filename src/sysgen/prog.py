"""
Compiled syscall descriptions.

These records are what the compiler produces and what the generated
`sys/<os>/gen/<arch>.py` modules are built from (they `import *` from here).
Every field has a default so the serializer can omit default-valued fields.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional, Set, Tuple

__all__ = [
    "DIR_IN",
    "DIR_OUT",
    "DIR_INOUT",
    "ArrayType",
    "BufferType",
    "ConstType",
    "ConstValue",
    "FlagsType",
    "IntType",
    "LenType",
    "PtrType",
    "ResourceDesc",
    "ResourceType",
    "StructDesc",
    "StructKey",
    "StructType",
    "Syscall",
    "Target",
]

DIR_IN = "in"
DIR_OUT = "out"
DIR_INOUT = "inout"

PSEUDO_PREFIX = "syz_"
PSEUDO_NR = 0xFFFFFFFFFFFFFFFF


@dataclass(frozen=True)
class IntType:
    fld_name: str = ""
    size: int = 0


@dataclass(frozen=True)
class ConstType:
    fld_name: str = ""
    size: int = 0
    val: int = 0


@dataclass(frozen=True)
class FlagsType:
    fld_name: str = ""
    size: int = 0
    name: str = ""
    vals: Tuple[int, ...] = ()


@dataclass(frozen=True)
class LenType:
    fld_name: str = ""
    size: int = 0
    buf: str = ""


@dataclass(frozen=True)
class ResourceType:
    fld_name: str = ""
    size: int = 0
    desc: str = ""


@dataclass(frozen=True)
class PtrType:
    fld_name: str = ""
    size: int = 0
    dir: str = DIR_IN
    elem: Any = None


@dataclass(frozen=True)
class BufferType:
    fld_name: str = ""
    kind: str = "blob"


@dataclass(frozen=True)
class ArrayType:
    fld_name: str = ""
    elem: Any = None


@dataclass(frozen=True, order=True)
class StructKey:
    name: str = ""
    dir: str = DIR_IN


@dataclass(frozen=True)
class StructType:
    fld_name: str = ""
    key: StructKey = field(default_factory=StructKey)


@dataclass(frozen=True)
class StructDesc:
    key: StructKey = field(default_factory=StructKey)
    fields: Tuple[Any, ...] = ()
    is_union: bool = False
    size: int = 0
    align: int = 0
    varlen: bool = False


@dataclass(frozen=True)
class ResourceDesc:
    name: str = ""
    kind: Tuple[str, ...] = ()
    size: int = 0
    values: Tuple[int, ...] = ()


@dataclass(frozen=True)
class Syscall:
    id: int = 0
    nr: int = 0
    name: str = ""
    call_name: str = ""
    args: Tuple[Any, ...] = ()
    ret: Optional[Any] = None

    @property
    def is_pseudo(self) -> bool:
        return self.call_name.startswith(PSEUDO_PREFIX)


@dataclass(frozen=True)
class ConstValue:
    name: str = ""
    value: int = 0


@dataclass(frozen=True)
class Target:
    os: str = ""
    arch: str = ""
    revision: str = ""
    ptr_size: int = 0
    page_size: int = 0
    num_pages: int = 0
    data_offset: int = 0
    syscalls: Tuple[Syscall, ...] = ()
    resources: Tuple[ResourceDesc, ...] = ()
    structs: Tuple[StructDesc, ...] = ()
    consts: Tuple[ConstValue, ...] = ()


@dataclass
class Program:
    syscalls: List[Syscall] = field(default_factory=list)
    resources: List[ResourceDesc] = field(default_factory=list)
    struct_descs: List[StructDesc] = field(default_factory=list)
    unsupported: Set[str] = field(default_factory=set)
