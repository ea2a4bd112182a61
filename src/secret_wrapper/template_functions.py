"""Function library available inside redaction templates.

Available functions:
- ``replicate(character, length)``: ``character`` repeated ``length`` times
- ``take(n, s)``: the first ``n`` characters of ``s``
- ``reverse(s)``: ``s`` reversed
- ``strlen(s)``: number of characters in ``s``
- ``mask_partial(s, left=0, right=0, mask_char='*')``: keep ``left`` leading and
  ``right`` trailing characters, mask the rest
- ``secret_string()``: the secret's textual form, gated by configuration

Every function is pure. Python ``str`` indexing is by code point, so lengths
and slices below count Unicode scalar values.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from .exceptions import TemplateRuntimeError
from .types import DEFAULT_MASK_CHAR, RenderContext

_REQUIRED = object()


@dataclass(frozen=True)
class Param:
    """A declared function parameter."""

    name: str
    type: type
    default: Any = _REQUIRED

    @property
    def required(self) -> bool:
        return self.default is _REQUIRED


@dataclass(frozen=True)
class FunctionSignature:
    """Signature and implementation of a template function."""

    name: str
    params: tuple[Param, ...]
    returns: type
    impl: Callable[..., Any]
    needs_context: bool = False

    def param(self, name: str) -> Param | None:
        for param in self.params:
            if param.name == name:
                return param
        return None


def _expect(value: Any, expected: type, func: str, name: str) -> None:
    # bool is an int subclass; templates never produce booleans
    if not isinstance(value, expected) or isinstance(value, bool):
        raise TemplateRuntimeError(
            f"{func}() argument '{name}' must be {expected.__name__}, got {type(value).__name__}"
        )


def replicate(character: str, length: int) -> str:
    """Repeat the first character of ``character`` ``length`` times."""
    _expect(character, str, "replicate", "character")
    _expect(length, int, "replicate", "length")
    if length <= 0:
        return ""
    mask_char = character[0] if character else DEFAULT_MASK_CHAR
    return mask_char * length


def take(n: int, s: str) -> str:
    """Return the first ``n`` characters of ``s``."""
    _expect(n, int, "take", "n")
    _expect(s, str, "take", "s")
    if n <= 0:
        return ""
    return s[:n]


def reverse(s: str) -> str:
    _expect(s, str, "reverse", "s")
    return s[::-1]


def strlen(s: str) -> int:
    _expect(s, str, "strlen", "s")
    return len(s)


def mask_partial(s: str, left: int = 0, right: int = 0, mask_char: str = DEFAULT_MASK_CHAR) -> str:
    """Keep ``left`` leading and ``right`` trailing characters and mask the rest.

    If nothing would be masked the input is returned unchanged.
    """
    _expect(s, str, "mask_partial", "s")
    _expect(left, int, "mask_partial", "left")
    _expect(right, int, "mask_partial", "right")
    _expect(mask_char, str, "mask_partial", "mask_char")
    left = max(left, 0)
    right = max(right, 0)
    if left + right >= len(s):
        return s
    fill = mask_char[0] if mask_char else DEFAULT_MASK_CHAR
    tail = s[len(s) - right:] if right else ""
    return s[:left] + fill * (len(s) - left - right) + tail


def secret_string(context: RenderContext) -> str:
    return context.secret_string()


FUNCTIONS: dict[str, FunctionSignature] = {
    signature.name: signature
    for signature in (
        FunctionSignature(
            "replicate",
            (Param("character", str), Param("length", int)),
            str,
            replicate,
        ),
        FunctionSignature("take", (Param("n", int), Param("s", str)), str, take),
        FunctionSignature("reverse", (Param("s", str),), str, reverse),
        FunctionSignature("strlen", (Param("s", str),), int, strlen),
        FunctionSignature(
            "mask_partial",
            (
                Param("s", str),
                Param("left", int, 0),
                Param("right", int, 0),
                Param("mask_char", str, DEFAULT_MASK_CHAR),
            ),
            str,
            mask_partial,
        ),
        FunctionSignature("secret_string", (), str, secret_string, needs_context=True),
    )
}

# Variables a template may reference and the type each evaluates to.
VARIABLES: dict[str, type] = {
    "secret_type": str,
    "secret_length": int,
    "secret_string": str,
}

CAPABILITY_NAMES = frozenset({"secret_string"})


def get_function(name: str) -> FunctionSignature | None:
    """Look up a library function by name."""
    return FUNCTIONS.get(name)
