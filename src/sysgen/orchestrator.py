"""
Per-OS generation: one compilation task per target, joined before anything
is reported or written.

Each task builds and returns its own Job through its future; the collector
reads Jobs only after every future has completed, so no task ever observes
another task's state and no shared collection is written concurrently.
"""

from __future__ import annotations

from collections import Counter
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from string import Template
from typing import Callable, Dict, List, Mapping, Sequence, Set

from . import compiler, consts, description, emitter, writer
from .description import Description
from .errors import CompileError, ConsistencyError, GenerationError, InputError, OutputError
from .prog import Program
from .targets import Target, targets_by_os


@dataclass(frozen=True)
class Config:
    root: Path
    catalog: Mapping[str, Sequence[Target]] = field(default_factory=targets_by_os)
    parse: Callable[[str], Description] = description.parse_glob
    load_consts: Callable[[str, str], Dict[str, int]] = consts.load_glob
    compile: Callable[[Description, Mapping[str, int], Target], Program] = compiler.compile_description
    arch_template: Template = emitter.ARCH_TEMPLATE

    def sys_dir(self, os_name: str) -> Path:
        return self.root / "sys" / os_name

    def description_glob(self, os_name: str) -> str:
        return (self.sys_dir(os_name) / "*.yaml").as_posix()

    def const_glob(self, target: Target) -> str:
        return (self.sys_dir(target.os) / f"*_{target.arch}.const").as_posix()

    def gen_path(self, target: Target) -> Path:
        return self.sys_dir(target.os) / "gen" / f"{target.arch}.py"


@dataclass
class Job:
    target: Target
    ok: bool = False
    errors: List[str] = field(default_factory=list)
    unsupported: Set[str] = field(default_factory=set)
    arch_data: bytes = b""
    source: bytes = b""
    revision: str = ""


def compile_target(config: Config, top: Description, target: Target) -> Job:
    job = Job(target=target)
    try:
        target_consts = config.load_consts(config.const_glob(target), target.arch)
        program = config.compile(top, target_consts, target)
    except (InputError, CompileError) as e:
        job.errors.extend(str(d) for d in e.diagnostics)
        return job
    job.unsupported = set(program.unsupported)
    job.source, job.revision = emitter.stamp_revision(
        target, emitter.generate(target, program, target_consts)
    )
    job.arch_data = emitter.generate_executor_syscalls(
        target, program.syscalls, job.revision, config.arch_template
    )
    job.ok = True
    return job


def run_jobs(config: Config, top: Description, targets: Sequence[Target]) -> List[Job]:
    ordered = sorted(targets, key=lambda t: t.arch)
    if not ordered:
        return []
    with ThreadPoolExecutor(max_workers=len(ordered)) as pool:
        futures = [pool.submit(compile_target, config, top, target) for target in ordered]
        wait(futures)
    return [f.result() for f in futures]


def report(jobs: Sequence[Job]) -> None:
    for job in jobs:
        print(f"generating {job.target}...")
        for msg in job.errors:
            print(msg)
        print()


def check_unsupported(jobs: Sequence[Job]) -> None:
    counts: Counter = Counter()
    for job in jobs:
        counts.update(job.unsupported)
    for name in sorted(counts):
        if counts[name] == len(jobs):
            raise ConsistencyError(f"{name} is unsupported on all arches (typo?)")


def generate_os(config: Config, os_name: str, targets: Sequence[Target]) -> List[Job]:
    try:
        top = config.parse(config.description_glob(os_name))
    except InputError as e:
        for d in e.diagnostics:
            print(d)
        raise GenerationError(f"failed to parse {os_name} descriptions") from e

    gen_dir = config.sys_dir(os_name) / "gen"
    try:
        gen_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputError(f"failed to create {gen_dir.as_posix()}: {e}") from e

    jobs = run_jobs(config, top, targets)
    report(jobs)
    failed = [str(job.target) for job in jobs if not job.ok]
    if failed:
        raise GenerationError(f"failed to generate {', '.join(failed)}")
    check_unsupported(jobs)

    for job in jobs:
        writer.write_source(config.gen_path(job.target), job.source)
    writer.write_executor_syscalls(config.root, os_name, [job.arch_data for job in jobs])
    return jobs


def run(config: Config) -> Dict[str, List[Job]]:
    results: Dict[str, List[Job]] = {}
    for os_name in sorted(config.catalog):
        results[os_name] = generate_os(config, os_name, config.catalog[os_name])
    return results
