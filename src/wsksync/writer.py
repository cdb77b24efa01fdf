from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Dict, Iterable, List, Literal, Optional

from pydantic import BaseModel, Field

from .errors import CollisionError, RecordError
from .logging_utils import get_logger
from .records import check_filename, derive_filename, render_record, strip_identity


logger = get_logger("wsksync.writer")

WriteStatus = Literal["written", "unchanged", "failed"]


class PlannedWrite(BaseModel):
    index: int
    record_id: str
    filename: str
    content: str


class Rejected(BaseModel):
    index: int
    record_id: Optional[str] = None
    reason: str


class WritePlan(BaseModel):
    writes: List[PlannedWrite] = Field(default_factory=list)
    rejected: List[Rejected] = Field(default_factory=list)
    # filename -> ids in dump order, only for names claimed more than once
    collisions: Dict[str, List[str]] = Field(default_factory=dict)
    dropped: List[PlannedWrite] = Field(default_factory=list)


class WriteResult(BaseModel):
    index: int
    record_id: str
    filename: str
    status: WriteStatus
    error: Optional[str] = None


def prepare_record(index: int, record: Dict[str, Any], id_field: str = "id", identity_field: str = "_id") -> PlannedWrite:
    record_id = record.get(id_field)
    if not isinstance(record_id, str):
        raise RecordError(f"record {index}: field {id_field!r} is missing or not a string", index, record_id)
    filename = derive_filename(record_id)
    problem = check_filename(filename)
    if problem:
        raise RecordError(f"record {index} ({record_id!r}): {problem}", index, record_id)
    return PlannedWrite(
        index=index,
        record_id=record_id,
        filename=filename,
        content=render_record(strip_identity(record, identity_field)),
    )


def plan_writes(
    records: Iterable[Dict[str, Any]],
    id_field: str = "id",
    identity_field: str = "_id",
    on_collision: str = "overwrite",
) -> WritePlan:
    plan = WritePlan()
    by_name: Dict[str, List[PlannedWrite]] = {}
    for i, rec in enumerate(records):
        try:
            pw = prepare_record(i, rec, id_field=id_field, identity_field=identity_field)
        except RecordError as exc:
            rid = exc.record_id if isinstance(exc.record_id, str) else None
            plan.rejected.append(Rejected(index=i, record_id=rid, reason=str(exc)))
            logger.error(str(exc), extra={"record_id": rid, "status": "rejected"})
            continue
        by_name.setdefault(pw.filename, []).append(pw)

    plan.collisions = {fn: [pw.record_id for pw in group] for fn, group in by_name.items() if len(group) > 1}
    if plan.collisions and on_collision == "error":
        raise CollisionError(plan.collisions)

    for fn, group in by_name.items():
        if len(group) == 1:
            plan.writes.append(group[0])
            continue
        keep = group[-1] if on_collision == "overwrite" else group[0]
        plan.writes.append(keep)
        plan.dropped.extend(pw for pw in group if pw is not keep)
        logger.warning(
            "%d records map to %s, keeping %r (%s)", len(group), fn, keep.record_id, on_collision,
            extra={"target": fn, "record_id": keep.record_id, "status": "collision"},
        )
    plan.writes.sort(key=lambda pw: pw.index)
    return plan


def write_one(pw: PlannedWrite, output_dir: Path) -> WriteResult:
    path = output_dir / pw.filename
    data = pw.content.encode("utf-8")
    try:
        if path.is_file() and path.read_bytes() == data:
            status: WriteStatus = "unchanged"
        else:
            with open(path, "wb") as f:
                f.write(data)
            status = "written"
    except OSError as exc:
        logger.error(
            "failed to write %s: %s", pw.filename, exc,
            extra={"record_id": pw.record_id, "target": pw.filename, "status": "failed"},
        )
        return WriteResult(index=pw.index, record_id=pw.record_id, filename=pw.filename, status="failed", error=str(exc))
    logger.info("%s", pw.filename[: -len(".json")], extra={"record_id": pw.record_id, "target": pw.filename, "status": status})
    return WriteResult(index=pw.index, record_id=pw.record_id, filename=pw.filename, status=status)


def write_all(plan: WritePlan, output_dir: str | Path, workers: int = 8) -> List[WriteResult]:
    """Write every planned file and return once all of them have finished."""
    out = Path(output_dir)
    if not plan.writes:
        return []
    with ThreadPoolExecutor(max_workers=max(1, workers)) as pool:
        futures = [pool.submit(write_one, pw, out) for pw in plan.writes]
        results = [f.result() for f in futures]
    return sorted(results, key=lambda r: r.index)
