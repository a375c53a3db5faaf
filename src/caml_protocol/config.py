"""
Runtime settings for the CAML server and tools.

Values come from ``CAML_*`` environment variables, which the server loads
from a ``.env`` file on startup.
"""

from __future__ import annotations

import logging
import os
from typing import Literal

from pydantic import BaseModel, Field

logger = logging.getLogger("caml-protocol")

_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUE_VALUES


class CamlSettings(BaseModel):
    """Configuration for parsing, indexing and export."""

    strict_ids: bool = Field(
        default=False,
        description="Reject documents that reuse entity ids instead of keeping the last one"
    )
    index_handouts: bool = Field(
        default=False,
        description="Include handouts in the entity index"
    )
    default_format: Literal["json", "yaml"] = Field(
        default="json",
        description="Format used when a tool call does not name one"
    )
    yaml_line_width: int = Field(
        default=120,
        ge=40,
        le=1000,
        description="Line width for YAML export"
    )
    log_level: str = Field(
        default="INFO",
        description="Level for the caml-protocol logger"
    )

    @classmethod
    def from_env(cls) -> "CamlSettings":
        """Build settings from ``CAML_*`` environment variables.

        Unset or empty variables keep their defaults.
        """
        values: dict[str, object] = {
            "strict_ids": _env_flag("CAML_STRICT_IDS", False),
            "index_handouts": _env_flag("CAML_INDEX_HANDOUTS", False),
        }
        fmt = os.environ.get("CAML_DEFAULT_FORMAT", "").strip().lower()
        if fmt:
            values["default_format"] = fmt
        width = os.environ.get("CAML_YAML_LINE_WIDTH", "").strip()
        if width:
            values["yaml_line_width"] = width
        level = os.environ.get("CAML_LOG_LEVEL", "").strip().upper()
        if level:
            values["log_level"] = level

        settings = cls.model_validate(values)
        logger.debug(f"Loaded settings: {settings.model_dump()}")
        return settings


__all__ = ["CamlSettings"]
