from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any, Dict, Literal, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ConfigurationError


load_dotenv(override=False)

DEFAULT_OUTPUT_DIR = "./modules/core/src/main/resources/web-source-kinds"

_URI_PASSWORD = re.compile(r"(//[^:/@]+:)[^@/]+@")


def _env_flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    model_config = ConfigDict(validate_default=True)

    mongo_uri: str = Field(default_factory=lambda: os.environ.get("MONGO_CONN_PROD", ""))
    database: str = Field(default_factory=lambda: os.environ.get("WSK_DATABASE", "precog"))
    collection: str = Field(default_factory=lambda: os.environ.get("WSK_COLLECTION", "web-source-kinds"))
    dump_path: str = Field(default_factory=lambda: os.environ.get("WSK_DUMP_PATH", "./wsk.json"))
    output_dir: str = Field(default_factory=lambda: os.environ.get("WSK_OUTPUT_DIR", DEFAULT_OUTPUT_DIR))
    id_field: str = Field(default_factory=lambda: os.environ.get("WSK_ID_FIELD", "id"))
    identity_field: str = Field(default_factory=lambda: os.environ.get("WSK_IDENTITY_FIELD", "_id"))
    on_collision: Literal["overwrite", "skip", "error"] = Field(default_factory=lambda: os.environ.get("WSK_ON_COLLISION", "overwrite"))
    parser: Literal["stream", "legacy"] = Field(default_factory=lambda: os.environ.get("WSK_PARSER", "stream"))
    workers: int = Field(default_factory=lambda: int(os.environ.get("WSK_WORKERS", "8")))
    keep_dump: bool = Field(default_factory=lambda: _env_flag("WSK_KEEP_DUMP"))
    create_output_dir: bool = Field(default_factory=lambda: _env_flag("WSK_CREATE_OUTPUT_DIR"))
    export_timeout: float = Field(default_factory=lambda: float(os.environ.get("WSK_EXPORT_TIMEOUT", "0")))  # 0 = wait forever
    export_attempts: int = Field(default_factory=lambda: int(os.environ.get("WSK_EXPORT_ATTEMPTS", "1")))
    export_retry_wait: float = Field(default_factory=lambda: float(os.environ.get("WSK_EXPORT_RETRY_WAIT", "1.0")))
    export_tool: str = Field(default_factory=lambda: os.environ.get("WSK_EXPORT_TOOL", "mongoexport"))
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default_factory=lambda: os.environ.get("WSK_LOG_LEVEL", "INFO").upper())

    @field_validator("workers", "export_attempts")
    @classmethod
    def _at_least_one(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("export_timeout", "export_retry_wait")
    @classmethod
    def _non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @property
    def timeout_seconds(self) -> Optional[float]:
        return self.export_timeout or None

    def masked_uri(self) -> str:
        return mask_uri(self.mongo_uri)

    def ensure_output_dir(self) -> Path:
        out = Path(self.output_dir)
        if not out.is_dir() and self.create_output_dir:
            out.mkdir(parents=True, exist_ok=True)
        return out


def mask_uri(uri: str) -> str:
    """Hide the password part of a connection URI."""
    return _URI_PASSWORD.sub(r"\1***@", uri)


def load_settings(**overrides: Any) -> Settings:
    """Build settings from the environment, letting non-None overrides win.

    Invalid values surface as ``ConfigurationError`` so callers only have to
    handle the package's own exceptions.
    """
    values: Dict[str, Any] = {k: v for k, v in overrides.items() if v is not None}
    try:
        return Settings(**values)
    except (ValidationError, ValueError) as exc:
        raise ConfigurationError(str(exc)) from exc
