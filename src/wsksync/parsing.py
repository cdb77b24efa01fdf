"""Decoding of ``mongoexport`` dumps.

The export tool prints one JSON document after another with nothing but
whitespace between them, so the dump as a whole is not a JSON value.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Iterator, List

from .errors import DumpFormatError


LEGACY_BOUNDARY = "}\n{"

_DECODER = json.JSONDecoder()
_WS = re.compile(r"[ \t\n\r]*")


def iter_documents(text: str) -> Iterator[Dict[str, Any]]:
    """Yield each top-level JSON object found in ``text``."""
    pos = 0
    end = len(text)
    n = 0
    while True:
        pos = _WS.match(text, pos).end()  # type: ignore[union-attr]
        if pos >= end:
            return
        try:
            obj, pos = _DECODER.raw_decode(text, pos)
        except json.JSONDecodeError as exc:
            raise DumpFormatError(
                f"document {n + 1}: {exc.msg} at line {exc.lineno} column {exc.colno}"
            ) from exc
        if not isinstance(obj, dict):
            raise DumpFormatError(f"document {n + 1}: expected a JSON object, got {type(obj).__name__}")
        n += 1
        yield obj


def join_legacy(text: str) -> str:
    return "[" + text.replace(LEGACY_BOUNDARY, "},{") + "]"


def parse_legacy(text: str) -> List[Dict[str, Any]]:
    """Parse by gluing documents into an array on ``}\\n{`` boundaries.

    A string value holding a literal ``}\\n{`` gets split too. That shows up as
    fewer records than boundaries and is reported instead of returned.
    """
    if not text.strip():
        return []
    try:
        docs = json.loads(join_legacy(text))
    except json.JSONDecodeError as exc:
        raise DumpFormatError(f"{exc.msg} at line {exc.lineno} column {exc.colno}") from exc
    expected = text.count(LEGACY_BOUNDARY) + 1
    if len(docs) != expected:
        raise DumpFormatError(
            f"found {expected - 1} record boundaries but decoded {len(docs)} records; "
            "a value probably contains a literal '}\\n{'"
        )
    for i, d in enumerate(docs):
        if not isinstance(d, dict):
            raise DumpFormatError(f"document {i + 1}: expected a JSON object, got {type(d).__name__}")
    return docs


def parse_dump(text: str, mode: str = "stream") -> List[Dict[str, Any]]:
    if text.startswith("\ufeff"):
        text = text[1:]
    if mode == "stream":
        return list(iter_documents(text))
    if mode == "legacy":
        return parse_legacy(text)
    raise ValueError(f"unknown parser mode: {mode}")
