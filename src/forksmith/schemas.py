"""Pydantic models for the machine-readable (``--json``) command output."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field

from .envfile import EnvFileResult
from .rewrite.engine import RewriteRun
from .runner import RunSummary
from .updates import Release


class FileRewriteReport(BaseModel):
    path: str
    applied: List[str] = []
    notes: List[str] = []
    warnings: List[str] = []
    error: Optional[str] = None
    changed: bool = False
    written: bool = False
    backup: Optional[str] = None


class RewriteReport(BaseModel):
    dry_run: bool = False
    changed: int = 0
    failed: int = 0
    exit_code: int = 0
    files: List[FileRewriteReport] = Field(default_factory=list)


class EnvUpdateItem(BaseModel):
    key: str
    old: str = Field(serialization_alias="from")
    new: str = Field(serialization_alias="to")


class EnvUpdateReport(BaseModel):
    output: str
    inputs: List[str] = []
    updates: List[EnvUpdateItem] = []
    missing: List[str] = []
    written: bool = False


class ReleaseItem(BaseModel):
    package: str
    version: str
    published: str


class ReleaseReport(BaseModel):
    days: int
    releases: List[ReleaseItem] = []


class UnitReport(BaseModel):
    name: str
    argv: List[str]
    cwd: str
    returncode: Optional[int] = None
    error: Optional[str] = None
    skipped: bool = False


class RunReport(BaseModel):
    exit_code: int = 0
    units: List[UnitReport] = []


def _rel(path: Path, root: Optional[Path]) -> str:
    if root is not None:
        try:
            return path.resolve().relative_to(root.resolve()).as_posix()
        except ValueError:
            pass
    return str(path)


def rewrite_report(run: RewriteRun, root: Optional[Path] = None) -> RewriteReport:
    files = [
        FileRewriteReport(
            path=_rel(r.path, root),
            applied=r.applied,
            notes=r.notes,
            warnings=r.warnings,
            error=r.error,
            changed=r.changed,
            written=r.written,
            backup=str(r.backup) if r.backup else None,
        )
        for r in run.results
    ]
    return RewriteReport(
        dry_run=run.dry_run,
        changed=len(run.changed),
        failed=len(run.failed),
        exit_code=run.exit_code,
        files=files,
    )


def env_report(result: EnvFileResult) -> EnvUpdateReport:
    return EnvUpdateReport(
        output=str(result.output),
        inputs=[str(p) for p in result.inputs],
        updates=[EnvUpdateItem(key=u.key, old=u.old, new=u.new) for u in result.updates],
        missing=result.missing,
        written=result.written,
    )


def release_report(releases: List[Release], days: int) -> ReleaseReport:
    return ReleaseReport(
        days=days,
        releases=[
            ReleaseItem(package=r.package, version=r.version, published=r.published.isoformat()) for r in releases
        ],
    )


def run_report(summary: RunSummary) -> RunReport:
    return RunReport(
        exit_code=summary.exit_code,
        units=[
            UnitReport(
                name=r.unit.name,
                argv=r.unit.argv,
                cwd=str(r.unit.cwd),
                returncode=r.returncode,
                error=r.error,
                skipped=r.skipped,
            )
            for r in summary.results
        ],
    )


def dump(report: BaseModel) -> str:
    return report.model_dump_json(indent=2, by_alias=True)
