from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List


@dataclass(frozen=True)
class Pos:
    file: str
    line: int = 0

    def __str__(self) -> str:
        if self.line:
            return f"{self.file}:{self.line}"
        return self.file


@dataclass(frozen=True)
class Diagnostic:
    pos: Pos
    message: str

    def __str__(self) -> str:
        return f"{self.pos}: {self.message}"


class SysgenError(Exception):
    pass


class DiagnosticError(SysgenError):
    """Failure carrying one or more positioned diagnostics."""

    def __init__(self, diagnostics: Iterable[Diagnostic]) -> None:
        self.diagnostics: List[Diagnostic] = list(diagnostics)
        super().__init__("\n".join(str(d) for d in self.diagnostics))


class InputError(DiagnosticError):
    pass


class CompileError(DiagnosticError):
    pass


class ConsistencyError(SysgenError):
    pass


class OutputError(SysgenError):
    pass


class GenerationError(SysgenError):
    pass
