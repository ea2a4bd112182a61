"""Secret values: wrapped payloads that render redacted and reveal on request.

A ``SecretValue`` holds one of eight payload kinds. Two channels read it:

- the presentation channel (``str``, ``repr``, ``format``, ``presentation``)
  always goes through ``render`` and never emits the payload;
- the data channel (``to_transfer``/``from_transfer`` and pickling) carries
  the payload verbatim so values survive hand-off between pipeline stages.

Scalar payloads are held in a ``bytearray`` that ``wipe`` overwrites with
zeros. Python has no deterministic destructor, so callers should release
secrets explicitly, preferably with ``with wrap(value) as secret: ...``;
``__del__`` wipes as a fallback.
"""

from __future__ import annotations

import copy
import functools
import hmac
import json
import struct
from datetime import datetime
from typing import TYPE_CHECKING, Any

from .exceptions import EmptyInputError, RevealOnNonSecret, UnsupportedKindError, WipedSecretError
from .models import PluginConfig
from .partial import apply_partial_redaction
from .template_parser import Template, compile_template
from .types import DEFAULT_MASK_CHAR, RedactionContext, RenderContext, SecretKind

if TYPE_CHECKING:
    from .config_manager import ConfigManager

DEFAULT_CONFIG = PluginConfig()
UNSIZED_MASK_LENGTH = 3

_FLOAT_FORMAT = ">d"


def classify(value: Any) -> SecretKind:
    """Map a host value onto one of the secret kinds."""
    if value is None:
        raise EmptyInputError()
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return SecretKind.BOOL
    if isinstance(value, int):
        return SecretKind.INT
    if isinstance(value, float):
        return SecretKind.FLOAT
    if isinstance(value, str):
        return SecretKind.STRING
    if isinstance(value, (bytes, bytearray, memoryview)):
        return SecretKind.BINARY
    if isinstance(value, datetime):
        return SecretKind.DATE
    if isinstance(value, list):
        return SecretKind.LIST
    if isinstance(value, dict):
        return SecretKind.RECORD
    raise UnsupportedKindError(type(value).__name__)


def _encode(kind: SecretKind, value: Any) -> bytearray:
    if kind is SecretKind.STRING:
        return bytearray(value.encode("utf-8"))
    if kind is SecretKind.INT:
        size = (value.bit_length() + 8) // 8
        return bytearray(value.to_bytes(size, "big", signed=True))
    if kind is SecretKind.BOOL:
        return bytearray(b"\x01" if value else b"\x00")
    if kind is SecretKind.FLOAT:
        return bytearray(struct.pack(_FLOAT_FORMAT, value))
    if kind is SecretKind.BINARY:
        return bytearray(value)
    if kind is SecretKind.DATE:
        return bytearray(value.isoformat().encode("utf-8"))
    raise UnsupportedKindError(kind.value)


def _decode(kind: SecretKind, payload: bytearray) -> Any:
    if kind is SecretKind.STRING:
        return payload.decode("utf-8")
    if kind is SecretKind.INT:
        return int.from_bytes(payload, "big", signed=True)
    if kind is SecretKind.BOOL:
        return payload == b"\x01"
    if kind is SecretKind.FLOAT:
        return struct.unpack(_FLOAT_FORMAT, bytes(payload))[0]
    if kind is SecretKind.BINARY:
        return bytes(payload)
    if kind is SecretKind.DATE:
        return datetime.fromisoformat(payload.decode("utf-8"))
    raise UnsupportedKindError(kind.value)


def canonical(value: Any) -> str:
    """Deterministic text encoding of a host value, used for comparison and hashing."""
    if isinstance(value, SecretValue):
        return f"secret_{value.kind.value}({value.canonical_bytes().hex()})"
    if isinstance(value, dict):
        items = sorted(f"{canonical(k)}:{canonical(v)}" for k, v in value.items())
        return "{" + ",".join(items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(canonical(v) for v in value) + "]"
    if isinstance(value, float):
        return f"float({struct.pack(_FLOAT_FORMAT, value).hex()})"
    return repr(value)


def _json_default(value: Any, context: RedactionContext, config: PluginConfig | None) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, SecretValue) and config is not None:
        # Nested secrets follow the snapshot the parent is rendered with
        return render_with_config(value, context, config)
    return str(value)


def _wipe_container(value: Any) -> None:
    """Zero nested buffers and secrets, then empty the container."""
    if isinstance(value, dict):
        for item in value.values():
            _wipe_container(item)
        value.clear()
    elif isinstance(value, list):
        for item in value:
            _wipe_container(item)
        value.clear()
    elif isinstance(value, bytearray):
        value[:] = bytes(len(value))
    elif isinstance(value, SecretValue):
        value.wipe()


class SecretValue:
    """A wrapped payload of one of the eight secret kinds."""

    __slots__ = ("_kind", "_payload", "_container", "_template", "_manager", "_wiped", "__weakref__")

    def __init__(
        self,
        kind: SecretKind,
        payload: bytearray | None = None,
        container: list | dict | None = None,
        template: Template | None = None,
        manager: ConfigManager | None = None,
    ):
        self._kind = kind
        self._payload = payload
        self._container = container
        self._template = template
        self._manager = manager
        self._wiped = False

    @classmethod
    def from_value(
        cls,
        value: Any,
        template: Template | None = None,
        manager: ConfigManager | None = None,
    ) -> SecretValue:
        kind = classify(value)
        if kind in (SecretKind.LIST, SecretKind.RECORD):
            return cls(kind, container=copy.deepcopy(value), template=template, manager=manager)
        return cls(kind, payload=_encode(kind, value), template=template, manager=manager)

    @property
    def kind(self) -> SecretKind:
        return self._kind

    @property
    def template_override(self) -> Template | None:
        return self._template

    @property
    def manager(self) -> ConfigManager | None:
        return self._manager

    @property
    def wiped(self) -> bool:
        return self._wiped

    def type_name(self) -> str:
        return self._kind.value

    def reveal(self) -> Any:
        """Return the original payload. Does not log or alter content."""
        if self._wiped:
            raise WipedSecretError(self._kind.value)
        if self._container is not None:
            return copy.deepcopy(self._container)
        return _decode(self._kind, self._payload)

    @property
    def length(self) -> int | None:
        """Natural size: characters, bytes, or items. ``None`` for unsized kinds."""
        if self._wiped or not self._kind.is_sized:
            return None
        if self._kind is SecretKind.STRING:
            return len(self._payload.decode("utf-8"))
        if self._kind is SecretKind.BINARY:
            return len(self._payload)
        return len(self._container)

    def textual_form(
        self,
        config: PluginConfig | None = None,
        context: RedactionContext = RedactionContext.DISPLAY,
    ) -> str:
        """The payload as display text; what ``secret_string`` exposes when allowed.

        Secrets nested in a list or record render with ``config`` when given,
        otherwise through their own ``str``.
        """
        value = self.reveal()
        kind = self._kind
        if kind is SecretKind.STRING:
            return value
        if kind is SecretKind.BOOL:
            return "true" if value else "false"
        if kind is SecretKind.FLOAT:
            return repr(value)
        if kind is SecretKind.BINARY:
            return value.hex()
        if kind is SecretKind.DATE:
            return value.isoformat()
        if kind in (SecretKind.LIST, SecretKind.RECORD):
            return json.dumps(value, default=functools.partial(_json_default, context=context, config=config))
        return str(value)

    def canonical_bytes(self) -> bytes:
        """Raw byte representation compared by ``equals`` and digested by ``hash``."""
        if self._wiped:
            raise WipedSecretError(self._kind.value)
        if self._container is not None:
            return canonical(self._container).encode("utf-8")
        return bytes(self._payload)

    def wipe(self) -> None:
        """Overwrite owned storage with zeros and release it."""
        if self._wiped:
            return
        if self._payload is not None:
            self._payload[:] = bytes(len(self._payload))
            self._payload = None
        if self._container is not None:
            _wipe_container(self._container)
            self._container = None
        self._wiped = True

    def with_template(self, template: Template | str | None) -> SecretValue:
        """Re-wrap the payload with a different template override."""
        if isinstance(template, str):
            template = compile_template(template)
        return SecretValue.from_value(self.reveal(), template, self._manager)

    def bind(self, manager: ConfigManager | None) -> SecretValue:
        """Attach the configuration manager used for presentation."""
        self._manager = manager
        return self

    # Presentation channel

    def presentation(self, context: RedactionContext = RedactionContext.SERIALIZATION) -> str:
        return render(self, context)

    def __str__(self) -> str:
        return render(self, RedactionContext.DISPLAY)

    def __repr__(self) -> str:
        return f"SecretValue({render(self, RedactionContext.DEBUG)})"

    def __format__(self, format_spec: str) -> str:
        return format(str(self), format_spec)

    # Data channel

    def to_transfer(self) -> dict[str, Any]:
        """Payload and override template for hand-off between pipeline stages."""
        return {
            "type": self._kind.value,
            "inner": self.reveal(),
            "redaction_template": self._template.source if self._template else None,
        }

    @classmethod
    def from_transfer(cls, data: dict[str, Any], manager: ConfigManager | None = None) -> SecretValue:
        template_text = data.get("redaction_template")
        template = compile_template(template_text) if template_text is not None else None
        secret = cls.from_value(data.get("inner"), template, manager)
        declared = data.get("type")
        if declared is not None and declared != secret.kind.value:
            secret.wipe()
            raise RevealOnNonSecret(
                f"transfer declares kind '{declared}' but carries a {secret.kind.value} payload"
            )
        return secret

    def __reduce__(self):
        return (_restore, (self._kind.value, self.reveal(), self._template.source if self._template else None))

    def __copy__(self) -> SecretValue:
        return SecretValue.from_value(self.reveal(), self._template, self._manager)

    def __deepcopy__(self, memo: dict) -> SecretValue:
        return self.__copy__()

    # Comparison

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SecretValue):
            return equals(self, other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    # Scoped release

    def __enter__(self) -> SecretValue:
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.wipe()

    def __del__(self) -> None:
        self.wipe()


def _restore(kind: str, inner: Any, template_text: str | None) -> SecretValue:
    return SecretValue.from_transfer(
        {"type": kind, "inner": inner, "redaction_template": template_text}
    )


def wrap(
    value: Any,
    template_override: Template | str | None = None,
    manager: ConfigManager | None = None,
) -> SecretValue:
    """Wrap a host value.

    Raises:
        EmptyInputError: ``value`` is None
        UnsupportedKindError: ``value`` is outside the eight kinds
        TemplateSyntaxError: ``template_override`` text does not compile
    """
    if isinstance(template_override, str):
        template_override = compile_template(template_override)
    if isinstance(value, SecretValue):
        # Already secret; only the override may change
        if template_override is None:
            return value
        return value.with_template(template_override)
    return SecretValue.from_value(value, template_override, manager)


def wrap_with(value: Any, template_text: str, manager: ConfigManager | None = None) -> SecretValue:
    """Wrap a value with a per-instance redaction template."""
    return wrap(value, compile_template(template_text), manager)


def reveal(secret: Any) -> Any:
    """Return a secret's original payload."""
    if not isinstance(secret, SecretValue):
        raise RevealOnNonSecret(f"expected a secret value, got {type(secret).__name__}")
    return secret.reveal()


def type_name(secret: SecretValue) -> str:
    """Kind identifier of a secret, e.g. ``int``."""
    if not isinstance(secret, SecretValue):
        raise RevealOnNonSecret(f"expected a secret value, got {type(secret).__name__}")
    return secret.kind.value


def equals(a: Any, b: Any) -> bool:
    """Constant-time equality between two secrets of the same kind.

    Different kinds compare unequal after a single kind check, without
    looking at either payload.
    """
    if not isinstance(a, SecretValue) or not isinstance(b, SecretValue):
        raise RevealOnNonSecret("equality is only defined between secret values")
    if a.kind is not b.kind:
        return False
    return hmac.compare_digest(a.canonical_bytes(), b.canonical_bytes())


def resolve_template(
    secret: SecretValue, context: RedactionContext, config: PluginConfig
) -> tuple[str, bool]:
    """Pick the template text by precedence and say whether it is the configured default.

    Precedence: instance override, per-type, per-context, default.
    """
    if secret.template_override is not None:
        return secret.template_override.source, False
    redaction = config.redaction
    text = redaction.template_for(secret.kind, context)
    is_default = secret.kind not in redaction.per_type and context not in redaction.per_context
    return text, is_default


def render_with_config(secret: SecretValue, context: RedactionContext, config: PluginConfig) -> str:
    redaction = config.redaction

    if redaction.show_unredacted and not secret.wiped:
        return secret.textual_form(config, context)

    text, is_default = resolve_template(secret, context, config)

    if (
        is_default
        and secret.kind is SecretKind.STRING
        and not secret.wiped
        and config.security.allow_partial_redaction
    ):
        partial = apply_partial_redaction(secret.textual_form(), redaction.partial)
        if partial is not None:
            return partial

    length = secret.length
    content_allowed = redaction.show_unredacted or not redaction.mask_secret

    def secret_string() -> str:
        if secret.wiped:
            return ""
        if content_allowed:
            return secret.textual_form(config, context)
        return DEFAULT_MASK_CHAR * (length if length is not None else UNSIZED_MASK_LENGTH)

    render_context = RenderContext(
        secret_type=secret.kind.value,
        secret_length=length,
        secret_string=secret_string,
    )
    return compile_template(text).render(render_context)


def render(
    secret: SecretValue,
    context: RedactionContext = RedactionContext.DISPLAY,
    config: PluginConfig | ConfigManager | None = None,
) -> str:
    """Produce the visible string for a secret.

    ``config`` may be a configuration snapshot or a manager; without one the
    secret's bound manager is used, and failing that the built-in defaults.
    """
    if not isinstance(secret, SecretValue):
        raise RevealOnNonSecret(f"expected a secret value, got {type(secret).__name__}")
    if isinstance(config, PluginConfig):
        return render_with_config(secret, context, config)
    manager = config if config is not None else secret.manager
    if manager is None:
        return render_with_config(secret, context, DEFAULT_CONFIG)
    with manager.read() as effective:
        return render_with_config(secret, context, effective)
