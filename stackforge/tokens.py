"""
Deferred Values Module

Responsibility:
- Define the placeholder kinds a stack input may contain:
  Token (runtime attribute of another resource), ForeignExpression (raw text
  in a remote system's template syntax), Composite (lazily concatenated
  string) and EncodedDocument (a nested value serialized at resolution time)
- Compose them structurally, with no evaluation at composition time
- Enumerate every Token inside a value together with its attribute path

A Value is one of:
    Literal (str, int, float, bool, None) | Token | ForeignExpression
    | Composite | EncodedDocument | list/tuple of Value | dict of str -> Value
"""

import itertools
from dataclasses import dataclass, field
from typing import Any, Iterator, Tuple

LITERAL_TYPES = (str, int, float, bool, type(None))

_token_ids = itertools.count(1)


def _next_token_id() -> int:
    return next(_token_ids)


class _Composable:
    """Mixin turning `+` into structural concatenation."""

    def __add__(self, other):
        if not isinstance(other, (str, _Composable)):
            return NotImplemented
        return concat(self, other)

    def __radd__(self, other):
        if not isinstance(other, (str, _Composable)):
            return NotImplemented
        return concat(other, self)


@dataclass(frozen=True, eq=True)
class Token(_Composable):
    """
    Placeholder for the runtime attribute `attribute` of resource `owner_id`.

    The owner is referenced by id only (plus the id of the owning stack),
    never by object, so a Token does not keep its owner alive.
    """
    id: int
    owner_id: str = field(compare=False)
    attribute: str = field(compare=False)
    stack_id: str = field(compare=False, default="")
    display_hint: str = field(compare=False, default="")

    @classmethod
    def create(cls, owner_id: str, attribute: str, stack_id: str = "") -> "Token":
        return cls(
            id=_next_token_id(),
            owner_id=owner_id,
            attribute=attribute,
            stack_id=stack_id,
            display_hint=f"{owner_id}.{attribute}",
        )

    def __str__(self):
        raise TypeError(
            f"Token {self.display_hint!r} has no value until synthesis; "
            f"compose it with '+' or concat() instead of converting it to str"
        )

    def __format__(self, format_spec):
        raise TypeError(
            f"Token {self.display_hint!r} cannot be used in an f-string or format(); "
            f"compose it with '+' or concat() instead"
        )


@dataclass(frozen=True)
class ForeignExpression(_Composable):
    """Raw text in another system's template syntax, passed through untouched."""
    raw: str

    def __post_init__(self):
        if not isinstance(self.raw, str):
            raise TypeError(f"ForeignExpression expects a str, got {type(self.raw).__name__}")


@dataclass(frozen=True)
class Composite(_Composable):
    """A string whose parts are kept apart until resolution."""
    parts: Tuple[Any, ...]

    def tokens(self) -> Tuple[Token, ...]:
        return tuple(p for p in self.parts if isinstance(p, Token))


@dataclass(frozen=True)
class EncodedDocument:
    """
    A nested value that becomes a string once resolved.

    `format` is any format known to the document emitter ("yaml", "json").
    """
    value: Any
    format: str = "yaml"


def raw_string(text: str) -> ForeignExpression:
    """Wrap text that must reach the remote system exactly as written."""
    return ForeignExpression(text)


def concat(*parts) -> Any:
    """
    Concatenate strings, Tokens and ForeignExpressions without evaluating them.

    Adjacent literal fragments are merged and nested Composites flattened.
    Returns a plain str when every part is a literal string.
    """
    flat = []
    for part in parts:
        if isinstance(part, Composite):
            pieces = part.parts
        elif isinstance(part, (str, Token, ForeignExpression)):
            pieces = (part,)
        else:
            raise TypeError(f"Cannot concatenate a {type(part).__name__} into a string")

        for piece in pieces:
            if piece == "":
                continue
            if isinstance(piece, str) and flat and isinstance(flat[-1], str):
                flat[-1] = flat[-1] + piece
            else:
                flat.append(piece)

    if not flat:
        return ""
    if len(flat) == 1 and isinstance(flat[0], str):
        return flat[0]
    return Composite(tuple(flat))


def yaml_encode(value: Any) -> EncodedDocument:
    return EncodedDocument(value, "yaml")


def json_encode(value: Any) -> EncodedDocument:
    return EncodedDocument(value, "json")


def join_path(path: str, key) -> str:
    """Extend a dotted attribute path with a mapping key or list index."""
    if isinstance(key, int):
        return f"{path}[{key}]"
    return f"{path}.{key}" if path else str(key)


def iter_tokens(value: Any, path: str = "") -> Iterator[Tuple[str, Token]]:
    """
    Yield (path, token) for every Token inside a value, in declaration order.

    Raises TypeError for objects that are not a valid Value kind.
    """
    if isinstance(value, Token):
        yield path, value
    elif isinstance(value, LITERAL_TYPES) or isinstance(value, ForeignExpression):
        return
    elif isinstance(value, Composite):
        for part in value.parts:
            yield from iter_tokens(part, path)
    elif isinstance(value, EncodedDocument):
        yield from iter_tokens(value.value, path)
    elif isinstance(value, (list, tuple)):
        for index, item in enumerate(value):
            yield from iter_tokens(item, join_path(path, index))
    elif isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise TypeError(f"Mapping keys must be str, got {type(key).__name__} at '{path}'")
            yield from iter_tokens(item, join_path(path, key))
    else:
        raise TypeError(f"Unsupported value of type {type(value).__name__} at '{path}'")
