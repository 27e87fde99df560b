"""
Document Renderer Module

Responsibility:
- Deterministically serialize a resolved document (YAML or JSON)
- Preserve key insertion order and scalar types exactly
- Leave foreign template expressions as written; only the target format
  decides whether a scalar needs quoting
- Refuse to emit anything still deferred

This is PURE rendering logic. No resolution happens here.
"""

import json
from typing import Any

import yaml

from stackforge.errors import UnresolvedTokenError
from stackforge.tokens import LITERAL_TYPES, Composite, EncodedDocument, ForeignExpression, Token, join_path

FORMATS = ("yaml", "json")
_ALIASES = {"yml": "yaml", "tf.json": "json"}


class _BlockDumper(yaml.SafeDumper):
    """SafeDumper that never emits anchors/aliases for repeated objects."""

    def ignore_aliases(self, data):
        return True


def normalize_format(format: str) -> str:
    name = _ALIASES.get(format.lower(), format.lower())
    if name not in FORMATS:
        raise ValueError(f"Unknown document format '{format}'. Expected one of: {', '.join(FORMATS)}")
    return name


def emit(document: Any, format: str = "yaml") -> bytes:
    """
    Serialize a resolved document.

    Args:
        document: Fully resolved tree of literals, lists and dicts
        format: "yaml" or "json" ("yml" and "tf.json" are accepted aliases)

    Returns:
        UTF-8 encoded document

    Raises:
        UnresolvedTokenError: a Token or other deferred value is still present
    """
    name = normalize_format(format)
    plain = _plain(document, "")

    if name == "yaml":
        text = yaml.dump(
            plain,
            Dumper=_BlockDumper,
            sort_keys=False,
            default_flow_style=False,
            allow_unicode=True,
            width=float("inf"),
        )
    else:
        text = json.dumps(plain, indent=2, ensure_ascii=False) + "\n"

    return text.encode("utf-8")


def emit_text(document: Any, format: str = "yaml") -> str:
    return emit(document, format).decode("utf-8")


def _plain(value: Any, path: str) -> Any:
    """Copy a resolved tree, turning tuples into lists and rejecting deferred values."""
    if isinstance(value, (Token, Composite, ForeignExpression, EncodedDocument)):
        raise UnresolvedTokenError(path or "<root>", value)
    if isinstance(value, LITERAL_TYPES):
        return value
    if isinstance(value, (list, tuple)):
        return [_plain(item, join_path(path, i)) for i, item in enumerate(value)]
    if isinstance(value, dict):
        return {key: _plain(item, join_path(path, key)) for key, item in value.items()}
    raise TypeError(f"Cannot emit a value of type {type(value).__name__} at '{path}'")
