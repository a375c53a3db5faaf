"""
JSON and YAML serialization of CAML documents.

Pure formatting: nothing is validated, so an incomplete module serializes
without complaint.
"""

from __future__ import annotations

import json
from typing import Any

import yaml
from pydantic import BaseModel

DEFAULT_INDENT = 2
DEFAULT_LINE_WIDTH = 120


class _NoAliasDumper(yaml.SafeDumper):
    """Safe dumper that never emits anchors or aliases."""

    def ignore_aliases(self, data: Any) -> bool:
        return True


def to_document(obj: BaseModel | dict[str, Any]) -> dict[str, Any]:
    """Turn a module, pack or plain dict into its wire dictionary."""
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json", by_alias=True, exclude_none=True)
    return obj


def export_to_json(obj: BaseModel | dict[str, Any], indent: int = DEFAULT_INDENT) -> str:
    """Serialize to pretty-printed JSON."""
    return json.dumps(to_document(obj), indent=indent, ensure_ascii=False, default=str)


def export_to_yaml(
    obj: BaseModel | dict[str, Any],
    indent: int = DEFAULT_INDENT,
    width: int = DEFAULT_LINE_WIDTH,
) -> str:
    """Serialize to block-style YAML with keys in declaration order."""
    return yaml.dump(
        to_document(obj),
        Dumper=_NoAliasDumper,
        indent=indent,
        width=width,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )


__all__ = [
    "DEFAULT_INDENT",
    "DEFAULT_LINE_WIDTH",
    "to_document",
    "export_to_json",
    "export_to_yaml",
]
