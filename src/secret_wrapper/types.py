"""Type definitions for the secret wrapper."""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

# Constants
DEFAULT_TEMPLATE = "<redacted:{{secret_type}}>"
UNTYPED_TEMPLATE = "<redacted>"
DEFAULT_HASH_SALT = "secret_wrapper_default_salt"
DEFAULT_MASK_CHAR = "*"
HASH_PREFIX_LENGTH = 8

STYLE_TEMPLATES = {
    "typed_brackets": DEFAULT_TEMPLATE,
    "simple": UNTYPED_TEMPLATE,
    "asterisks": "***",
    "brackets": "[HIDDEN]",
}


class SecretKind(str, Enum):
    """The closed set of payload kinds a secret can hold."""

    STRING = "string"
    INT = "int"
    BOOL = "bool"
    FLOAT = "float"
    BINARY = "binary"
    DATE = "date"
    LIST = "list"
    RECORD = "record"

    @property
    def type_name(self) -> str:
        """Host-facing custom type name, e.g. ``secret_int``."""
        return f"secret_{self.value}"

    @property
    def is_sized(self) -> bool:
        return self in SIZED_KINDS


SIZED_KINDS = frozenset(
    {SecretKind.STRING, SecretKind.BINARY, SecretKind.LIST, SecretKind.RECORD}
)


class RedactionContext(str, Enum):
    """Occasion a secret is rendered for."""

    DISPLAY = "display"
    DEBUG = "debug"
    SERIALIZATION = "serialization"
    AUDIT = "audit"


@dataclass(frozen=True)
class RenderContext:
    """Metadata a template may read while rendering one secret.

    ``secret_string`` is a capability rather than a field: calling it is the
    only way a template reaches content, and what it returns is decided by
    the caller that built the context.
    """

    secret_type: str
    secret_length: int | None
    secret_string: Callable[[], str]
