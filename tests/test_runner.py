import asyncio
import json
from pathlib import Path

import pytest

from forksmith import schemas
from forksmith.runner import SPAWN_FAILED, WorkUnit, run_units


class FakeExecutor:
    """Records how many units were in flight at once."""

    def __init__(self, codes=None, fail_spawn=()):
        self.codes = codes or {}
        self.fail_spawn = set(fail_spawn)
        self.active = 0
        self.max_active = 0
        self.started = []

    async def __call__(self, unit: WorkUnit) -> int:
        if unit.name in self.fail_spawn:
            raise FileNotFoundError(unit.argv[0])
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.started.append(unit.name)
        await asyncio.sleep(0.01)
        self.active -= 1
        return self.codes.get(unit.name, 0)


def _units(count: int):
    return [WorkUnit(name=f"pkg{i}", argv=["bun", "install"], cwd=Path(".")) for i in range(count)]


@pytest.mark.parametrize("concurrency", [1, 2, 4])
def test_concurrency_bound_is_respected(concurrency):
    executor = FakeExecutor()
    summary = run_units(_units(6), concurrency=concurrency, executor=executor)
    assert executor.max_active <= concurrency
    assert len(executor.started) == 6
    assert summary.exit_code == 0


def test_outcome_does_not_depend_on_concurrency():
    outcomes = []
    for concurrency in (1, 3, 6):
        executor = FakeExecutor(codes={"pkg1": 2, "pkg4": 1})
        summary = run_units(_units(6), concurrency=concurrency, executor=executor)
        outcomes.append(([r.returncode for r in summary.results], summary.exit_code))
    assert outcomes[0] == outcomes[1] == outcomes[2]
    assert outcomes[0] == ([0, 2, 0, 0, 1, 0], 1)


def test_failure_does_not_cancel_siblings():
    executor = FakeExecutor(codes={"pkg0": 1})
    summary = run_units(_units(3), concurrency=1, executor=executor)
    assert executor.started == ["pkg0", "pkg1", "pkg2"]
    assert [r.unit.name for r in summary.failures] == ["pkg0"]


def test_spawn_failure_counts_as_unit_failure():
    executor = FakeExecutor(fail_spawn={"pkg1"})
    summary = run_units(_units(2), concurrency=2, executor=executor)
    assert summary.results[1].returncode == SPAWN_FAILED
    assert summary.results[0].ok
    assert summary.exit_code == 1


def test_dry_run_prints_and_runs_nothing(capsys):
    executor = FakeExecutor()
    summary = run_units(_units(2), dry_run=True, executor=executor)
    assert executor.started == []
    assert summary.exit_code == 0
    out = capsys.readouterr().out
    assert "[dry-run] pkg0: bun install" in out


def test_run_report_lists_units_in_order():
    executor = FakeExecutor(codes={"pkg1": 3})
    summary = run_units(_units(2), concurrency=2, executor=executor)
    report = json.loads(schemas.dump(schemas.run_report(summary)))
    assert report["exit_code"] == 1
    assert [(u["name"], u["returncode"]) for u in report["units"]] == [("pkg0", 0), ("pkg1", 3)]
    assert report["units"][1]["error"] == "exit status 3"
