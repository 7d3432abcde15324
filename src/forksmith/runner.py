"""
Bounded fan-out of independent external commands.

Every unit runs to completion; failures are collected, never cancel
siblings, and are not retried. At most ``concurrency`` units hold a slot at
any moment, and the aggregate outcome does not depend on that limit.
"""

from __future__ import annotations

import asyncio
import logging
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

log = logging.getLogger(__name__)

SPAWN_FAILED = 127


@dataclass
class WorkUnit:
    name: str
    argv: List[str]
    cwd: Path
    env: Optional[Dict[str, str]] = None

    def describe(self) -> str:
        return f"{shlex.join(self.argv)}  (in {self.cwd})"


@dataclass
class UnitResult:
    unit: WorkUnit
    returncode: Optional[int] = None
    error: Optional[str] = None
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return self.skipped or self.returncode == 0


@dataclass
class RunSummary:
    results: List[UnitResult] = field(default_factory=list)

    @property
    def failures(self) -> List[UnitResult]:
        return [r for r in self.results if not r.ok]

    @property
    def exit_code(self) -> int:
        return 1 if self.failures else 0


Executor = Callable[[WorkUnit], Awaitable[int]]


async def spawn_unit(unit: WorkUnit) -> int:
    proc = await asyncio.create_subprocess_exec(*unit.argv, cwd=str(unit.cwd), env=unit.env)
    return await proc.wait()


async def _run_one(unit: WorkUnit, sem: asyncio.Semaphore, executor: Executor) -> UnitResult:
    async with sem:
        log.info("-> %s: %s", unit.name, unit.describe())
        try:
            code = await executor(unit)
        except OSError as exc:
            log.error("x %s: could not start: %s", unit.name, exc)
            return UnitResult(unit=unit, returncode=SPAWN_FAILED, error=str(exc))
    if code == 0:
        log.info("ok %s", unit.name)
        return UnitResult(unit=unit, returncode=0)
    log.error("x %s exited with status %s", unit.name, code)
    return UnitResult(unit=unit, returncode=code, error=f"exit status {code}")


async def run_units_async(
    units: Sequence[WorkUnit],
    concurrency: int = 1,
    executor: Optional[Executor] = None,
) -> RunSummary:
    sem = asyncio.Semaphore(max(1, concurrency))
    run = executor or spawn_unit
    tasks = [asyncio.create_task(_run_one(unit, sem, run)) for unit in units]
    results = await asyncio.gather(*tasks)
    return RunSummary(results=list(results))


def run_units(
    units: Sequence[WorkUnit],
    concurrency: int = 1,
    dry_run: bool = False,
    executor: Optional[Executor] = None,
) -> RunSummary:
    """Run ``units`` with at most ``concurrency`` at a time; results keep unit order."""
    if dry_run:
        for unit in units:
            print(f"[dry-run] {unit.name}: {unit.describe()}")
        return RunSummary(results=[UnitResult(unit=u, skipped=True) for u in units])
    return asyncio.run(run_units_async(units, concurrency=concurrency, executor=executor))


def report_failures(summary: RunSummary, label: str) -> None:
    if not summary.failures:
        print(f"All {len(summary.results)} {label} succeeded.")
        return
    print(f"{len(summary.failures)} of {len(summary.results)} {label} failed:")
    for result in summary.failures:
        print(f" - {result.unit.name}: {result.error or 'failed'}")
