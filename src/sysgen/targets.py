from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple


DEFAULT_DATA_OFFSET = 512 << 20
DATA_SIZE = 16 << 20


@dataclass(frozen=True)
class Target:
    os: str
    arch: str
    ptr_size: int
    page_size: int
    num_pages: int
    data_offset: int
    syscall_numbers: bool
    c_arch: Tuple[str, ...]

    def __str__(self) -> str:
        return f"{self.os}/{self.arch}"


def _make(
    os_name: str,
    arch: str,
    *,
    ptr_size: int,
    c_arch: Sequence[str],
    page_size: int = 4 << 10,
    syscall_numbers: bool = True,
) -> Target:
    return Target(
        os=os_name,
        arch=arch,
        ptr_size=ptr_size,
        page_size=page_size,
        num_pages=DATA_SIZE // page_size,
        data_offset=DEFAULT_DATA_OFFSET,
        syscall_numbers=syscall_numbers,
        c_arch=tuple(c_arch),
    )


CATALOG: Tuple[Target, ...] = (
    _make("freebsd", "amd64", ptr_size=8, c_arch=["__x86_64__"]),
    _make("linux", "386", ptr_size=4, c_arch=["__i386__"]),
    _make("linux", "amd64", ptr_size=8, c_arch=["__x86_64__"]),
    _make("linux", "arm", ptr_size=4, c_arch=["__arm__"]),
    _make("linux", "arm64", ptr_size=8, c_arch=["__aarch64__"]),
    _make(
        "linux",
        "ppc64le",
        ptr_size=8,
        page_size=64 << 10,
        c_arch=["__ppc64__", "__PPC64__", "__powerpc64__"],
    ),
)


def targets_by_os(targets: Sequence[Target] = CATALOG) -> Dict[str, List[Target]]:
    out: Dict[str, List[Target]] = {}
    for target in targets:
        out.setdefault(target.os, []).append(target)
    return out
