"""Exception types raised by wsksync.

Fatal errors (export, dump format, output directory, collisions under the
``error`` policy) stop a run. ``RecordError`` only ever concerns one record and
is collected into the run report instead of propagating.
"""

from __future__ import annotations

from typing import Dict, List


class WskSyncError(Exception):
    """Base class for all wsksync errors."""


class ConfigurationError(WskSyncError):
    """Settings are missing or invalid."""


class ExportError(WskSyncError):
    """The export command failed or could not be run."""

    def __init__(self, message: str, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class ExportToolNotFound(ExportError):
    """The export executable is not on PATH."""


class DumpFormatError(WskSyncError):
    """The dump file could not be decoded into records."""


class RecordError(WskSyncError):
    """A single record cannot be turned into an output file."""

    def __init__(self, message: str, index: int, record_id: object = None):
        super().__init__(message)
        self.index = index
        self.record_id = record_id


class CollisionError(WskSyncError):
    """Distinct ids normalize to the same filename and the policy forbids it."""

    def __init__(self, collisions: Dict[str, List[str]]):
        names = ", ".join(f"{fn} <- {ids}" for fn, ids in sorted(collisions.items()))
        super().__init__(f"filename collisions: {names}")
        self.collisions = collisions


class OutputDirError(WskSyncError):
    """The output directory does not exist."""
