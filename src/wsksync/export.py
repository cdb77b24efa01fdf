from __future__ import annotations

import shutil
import subprocess
import time
from typing import Callable, List

from pydantic import BaseModel
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .config import Settings, mask_uri
from .errors import ConfigurationError, ExportError, ExportToolNotFound
from .logging_utils import get_logger


logger = get_logger("wsksync.export")

Runner = Callable[..., "subprocess.CompletedProcess[str]"]


class ExportResult(BaseModel):
    command: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    dump_path: str
    elapsed_s: float = 0.0


def build_command(settings: Settings) -> List[str]:
    return [
        settings.export_tool,
        f"--uri={settings.mongo_uri}",
        "-d", settings.database,
        "-c", settings.collection,
        "-o", settings.dump_path,
    ]


def masked_command(cmd: List[str]) -> List[str]:
    return [mask_uri(part) for part in cmd]


def export_available(settings: Settings) -> bool:
    return shutil.which(settings.export_tool) is not None


def _run_once(settings: Settings, runner: Runner) -> ExportResult:
    cmd = build_command(settings)
    shown = masked_command(cmd)
    logger.info("running %s", " ".join(shown))
    start = time.perf_counter()
    try:
        res = runner(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True, timeout=settings.timeout_seconds)
    except subprocess.TimeoutExpired as exc:
        raise ExportError(f"export timed out after {exc.timeout}s") from exc
    elapsed = round(time.perf_counter() - start, 3)
    logger.info("stdout: %s", res.stdout or "")
    logger.info("stderr: %s", res.stderr or "")
    if res.returncode != 0:
        raise ExportError(
            f"export exited with status {res.returncode}: {(res.stderr or '').strip()}",
            returncode=res.returncode,
            stderr=res.stderr or "",
        )
    return ExportResult(
        command=shown,
        returncode=res.returncode,
        stdout=res.stdout or "",
        stderr=res.stderr or "",
        dump_path=settings.dump_path,
        elapsed_s=elapsed,
    )


def export_data(settings: Settings, runner: Runner | None = None) -> ExportResult:
    """Export the configured collection into ``settings.dump_path``.

    ``runner`` defaults to ``subprocess.run``; the tool must then be on PATH.
    Command failures and timeouts are retried up to ``export_attempts`` times.
    """
    if not settings.mongo_uri:
        raise ConfigurationError("MONGO_CONN_PROD is not set")
    if runner is None:
        if not export_available(settings):
            raise ExportToolNotFound(f"`{settings.export_tool}` not found on PATH")
        runner = subprocess.run

    retrying = Retrying(
        stop=stop_after_attempt(settings.export_attempts),
        wait=wait_exponential(multiplier=settings.export_retry_wait, max=20),
        retry=retry_if_exception_type(ExportError),
        reraise=True,
    )
    try:
        result = retrying(_run_once, settings, runner)
    except ExportError as exc:
        logger.error("export failed: %s", exc, extra={"returncode": exc.returncode})
        raise
    logger.info(
        "exported %s.%s to %s", settings.database, settings.collection, settings.dump_path,
        extra={"path": settings.dump_path, "elapsed_s": result.elapsed_s},
    )
    return result
