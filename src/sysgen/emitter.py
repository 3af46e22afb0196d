"""
Renders a compiled program into the per-target artifacts.

`generate` produces the data-definition module, `stamp_revision` binds its
content hash as `revision_<arch>`, and `generate_executor_syscalls` renders the
target's guarded block of the executor C table. Nothing here touches disk.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from string import Template
from typing import List, Mapping, Sequence, Tuple

from . import prog, serializer
from .targets import Target


AUTOGENERATED = "AUTOGENERATED FILE"

ARCH_TEMPLATE = Template(
    """
#if ${guard}
#define SYZ_ARCH "${arch}"
#define SYZ_REVISION "${revision}"
#define SYZ_PAGE_SIZE ${page_size}
#define SYZ_NUM_PAGES ${num_pages}
#define SYZ_DATA_OFFSET ${data_offset}
unsigned syscall_count = ${count};
call_t syscalls[] = {
${rows}};
#endif
"""
)


@dataclass(frozen=True)
class SyscallRow:
    name: str
    call_name: str
    nr: int
    need_call: bool

    def render(self) -> str:
        if self.need_call:
            return f'\t{{"{self.name}", {self.nr}, (syscall_t){self.call_name}}},\n'
        return f'\t{{"{self.name}", {self.nr}}},\n'


def _int32(value: int) -> int:
    value &= 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return value


def _table(name: str, value: object) -> str:
    return f"{name} = {serializer.write(value)}\n\n"


def const_values(consts: Mapping[str, int]) -> List[prog.ConstValue]:
    return [prog.ConstValue(name=name, value=consts[name]) for name in sorted(consts)]


def generate(target: Target, program: prog.Program, consts: Mapping[str, int]) -> bytes:
    arch = target.arch
    out: List[str] = []
    out.append(f"# {AUTOGENERATED}\n\n")
    out.append("from sysgen.prog import *  # noqa: F401,F403\n\n")
    out.append(_table(f"resources_{arch}", tuple(program.resources)))
    out.append(_table(f"struct_descs_{arch}", tuple(program.struct_descs)))
    out.append(_table(f"syscalls_{arch}", tuple(sorted(program.syscalls, key=lambda c: c.name))))
    out.append(_table(f"consts_{arch}", tuple(const_values(consts))))
    out.append(
        f"Target_{arch} = Target(\n"
        f"    os={target.os!r},\n"
        f"    arch={arch!r},\n"
        f"    revision=revision_{arch},\n"
        f"    ptr_size={target.ptr_size},\n"
        f"    page_size={target.page_size},\n"
        f"    num_pages={target.num_pages},\n"
        f"    data_offset={target.data_offset},\n"
        f"    syscalls=syscalls_{arch},\n"
        f"    resources=resources_{arch},\n"
        f"    structs=struct_descs_{arch},\n"
        f"    consts=consts_{arch},\n"
        f")\n"
    )
    return "".join(out).encode("utf-8")


def revision(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


def stamp_revision(target: Target, data: bytes) -> Tuple[bytes, str]:
    """Hashes `data` and binds the digest right before the Target record."""
    rev = revision(data)
    marker = f"\nTarget_{target.arch} = ".encode("utf-8")
    at = data.rfind(marker)
    if at < 0:
        raise ValueError(f"no Target_{target.arch} record in generated source")
    line = f'revision_{target.arch} = "{rev}"\n\n'.encode("utf-8")
    return data[: at + 1] + line + data[at + 1 :], rev


def syscall_rows(target: Target, syscalls: Sequence[prog.Syscall]) -> List[SyscallRow]:
    rows = [
        SyscallRow(
            name=c.name,
            call_name=c.call_name,
            nr=_int32(c.nr),
            need_call=not target.syscall_numbers or c.call_name.startswith(prog.PSEUDO_PREFIX),
        )
        for c in syscalls
    ]
    return sorted(rows, key=lambda r: r.name)


def generate_executor_syscalls(
    target: Target,
    syscalls: Sequence[prog.Syscall],
    rev: str,
    template: Template = ARCH_TEMPLATE,
) -> bytes:
    rows = syscall_rows(target, syscalls)
    guard = "".join(f"defined({cdef}) || " for cdef in target.c_arch) + "0"
    text = template.substitute(
        guard=guard,
        arch=target.arch,
        revision=rev,
        page_size=target.page_size,
        num_pages=target.num_pages,
        data_offset=target.data_offset,
        count=len(rows),
        rows="".join(r.render() for r in rows),
    )
    return text.encode("utf-8")
