from __future__ import annotations

import json
from typing import Any, Dict


def derive_filename(record_id: str) -> str:
    """``"My Source @ Foo"`` -> ``"my_source_-_foo.json"``."""
    return record_id.replace(" ", "_").replace("@", "-").lower() + ".json"


def strip_identity(record: Dict[str, Any], identity_field: str = "_id") -> Dict[str, Any]:
    return {k: v for k, v in record.items() if k != identity_field}


def render_record(record: Dict[str, Any]) -> str:
    return json.dumps(record, indent=2, ensure_ascii=False) + "\n"


def check_filename(filename: str) -> str | None:
    """Return why ``filename`` cannot live directly inside the output dir, or None."""
    stem = filename[: -len(".json")]
    if not stem:
        return "id normalizes to an empty filename"
    if "/" in filename or "\\" in filename or "\x00" in filename:
        return f"filename {filename!r} contains a path separator"
    return None
