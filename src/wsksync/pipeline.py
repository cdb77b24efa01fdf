from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .config import Settings
from .errors import DumpFormatError, OutputDirError
from .export import ExportResult, Runner, export_data
from .logging_utils import get_logger
from .parsing import parse_dump
from .writer import Rejected, WriteResult, plan_writes, write_all


logger = get_logger("wsksync.pipeline")


class SyncReport(BaseModel):
    dump_path: str
    output_dir: str
    records: int = 0
    written: int = 0
    unchanged: int = 0
    failed: int = 0
    rejected: int = 0
    dropped: int = 0
    collisions: Dict[str, List[str]] = Field(default_factory=dict)
    failures: List[WriteResult] = Field(default_factory=list)
    rejections: List[Rejected] = Field(default_factory=list)
    dump_removed: bool = False
    export: Optional[ExportResult] = None

    @property
    def ok(self) -> bool:
        return self.failed == 0 and self.rejected == 0


def check_output_dir(settings: Settings) -> Path:
    out = settings.ensure_output_dir()
    if not out.is_dir():
        raise OutputDirError(f"output directory {str(out)!r} does not exist")
    return out


def split_dump(settings: Settings, dump_path: str | Path | None = None) -> SyncReport:
    """Split an existing dump into one file per record.

    Returns after every write has completed; the dump file itself is not touched.
    """
    out = check_output_dir(settings)
    src = Path(dump_path or settings.dump_path)
    if not src.is_file():
        raise DumpFormatError(f"dump file {str(src)!r} not found")
    try:
        text = src.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise DumpFormatError(f"dump file {str(src)!r} is not valid UTF-8: {exc}") from exc
    records = parse_dump(text, mode=settings.parser)

    plan = plan_writes(
        records,
        id_field=settings.id_field,
        identity_field=settings.identity_field,
        on_collision=settings.on_collision,
    )
    results = write_all(plan, out, workers=settings.workers)

    report = SyncReport(
        dump_path=str(src),
        output_dir=str(out),
        records=len(records),
        written=sum(1 for r in results if r.status == "written"),
        unchanged=sum(1 for r in results if r.status == "unchanged"),
        failed=sum(1 for r in results if r.status == "failed"),
        rejected=len(plan.rejected),
        dropped=len(plan.dropped),
        collisions=plan.collisions,
        failures=[r for r in results if r.status == "failed"],
        rejections=plan.rejected,
    )
    logger.info(
        "%d records: %d written, %d unchanged, %d failed, %d rejected",
        report.records, report.written, report.unchanged, report.failed, report.rejected,
        extra={"count": report.records, "path": str(out)},
    )
    return report


def remove_dump(path: str | Path) -> bool:
    p = Path(path)
    try:
        p.unlink()
    except FileNotFoundError:
        return False
    logger.info("removed %s", p, extra={"path": str(p)})
    return True


def run_sync(settings: Settings, runner: Runner | None = None) -> SyncReport:
    """Export, split, then delete the dump.

    Any export or parse error propagates. A dump that failed to parse is left
    on disk.
    """
    check_output_dir(settings)
    exported = export_data(settings, runner=runner)
    report = split_dump(settings)
    report.export = exported
    if not settings.keep_dump:
        report.dump_removed = remove_dump(settings.dump_path)
    return report
