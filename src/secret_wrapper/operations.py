"""Operations that answer questions about a secret without revealing it.

Each function takes a ``SecretValue`` and returns a plain, non-sensitive
result: a length, a boolean, a digest or a metadata mapping.
"""

from __future__ import annotations

import hashlib
import ipaddress
import re
from typing import Any

from .exceptions import OperationError, RevealOnNonSecret, WrapError
from .secret import SecretValue, classify
from .types import SecretKind

HASH_ALGORITHMS = ("sha256", "sha512", "blake2b")
SUPPORTED_FORMATS = ("email", "uuid", "hex", "base64", "jwt", "ipv4", "ipv6", "ssn", "credit-card", "regex")

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
UUID_PATTERN = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}$"
)
HEX_PATTERN = re.compile(r"^[0-9a-fA-F]+$")
BASE64_PATTERN = re.compile(r"^[A-Za-z0-9+/]*={0,2}$")
JWT_PATTERN = re.compile(r"^[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+$")
SSN_PATTERN = re.compile(r"^\d{3}-\d{2}-\d{4}$")


def _require_secret(secret: Any) -> SecretValue:
    if not isinstance(secret, SecretValue):
        raise RevealOnNonSecret(f"expected a secret value, got {type(secret).__name__}")
    return secret


def length(secret: SecretValue) -> int:
    """Characters of a text secret, bytes of a binary one, items of a list or record."""
    secret = _require_secret(secret)
    size = secret.length
    if size is None:
        raise OperationError(
            f"secret_{secret.kind.value} has no length; only string, binary, list and record secrets do"
        )
    return size


def is_empty(secret: SecretValue) -> bool:
    return length(secret) == 0


def contains(secret: SecretValue, needle: Any) -> bool:
    """Test a secret against a plain value.

    Text secrets check for a substring, binary for a byte sequence, lists for
    membership and records for a key. Scalar secrets compare for equality
    with a value of the same kind.
    """
    secret = _require_secret(secret)
    kind = secret.kind

    if kind is SecretKind.STRING:
        if not isinstance(needle, str):
            raise OperationError(f"secret_string can only be searched for text, got {type(needle).__name__}")
        return needle in secret.reveal()
    if kind is SecretKind.BINARY:
        if not isinstance(needle, (bytes, bytearray)):
            raise OperationError(f"secret_binary can only be searched for bytes, got {type(needle).__name__}")
        return bytes(needle) in secret.reveal()
    if kind is SecretKind.LIST:
        return needle in secret.reveal()
    if kind is SecretKind.RECORD:
        if not isinstance(needle, str):
            raise OperationError(f"secret_record keys are text, got {type(needle).__name__}")
        return needle in secret.reveal()

    try:
        needle_kind = classify(needle)
    except WrapError as e:
        raise OperationError(f"cannot compare secret_{kind.value} with {type(needle).__name__}") from e
    if needle_kind is not kind:
        raise OperationError(f"cannot compare secret_{kind.value} with a {needle_kind.value} value")
    return secret.reveal() == needle


def hash(secret: SecretValue, algorithm: str = "sha256") -> str:
    """Hex digest of the secret's canonical bytes."""
    secret = _require_secret(secret)
    name = algorithm.lower()
    if name not in HASH_ALGORITHMS:
        raise OperationError(
            f"Unsupported hash algorithm: {algorithm}. Supported algorithms: {', '.join(HASH_ALGORITHMS)}"
        )
    return hashlib.new(name, secret.canonical_bytes()).hexdigest()


def validate_ssn(text: str) -> bool:
    if not SSN_PATTERN.match(text):
        return False
    area = int(text[:3])
    return area != 0 and area != 666 and area < 900


def luhn_check(digits: list[int]) -> bool:
    total = 0
    parity = len(digits) % 2
    for i, digit in enumerate(digits):
        if i % 2 == parity:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def validate_credit_card(text: str) -> bool:
    if any(not c.isdigit() and c not in "- " for c in text):
        return False
    digits = [int(c) for c in text if c.isdigit()]
    if not 13 <= len(digits) <= 19:
        return False
    return luhn_check(digits)


def _is_ip(text: str, version: int) -> bool:
    try:
        address = ipaddress.ip_address(text)
    except ValueError:
        return False
    return address.version == version


def check_format(text: str, format_name: str, pattern: str | None = None) -> bool:
    """Check plain text against a named format."""
    name = format_name.lower()
    if name == "email":
        return bool(EMAIL_PATTERN.match(text))
    if name == "uuid":
        return bool(UUID_PATTERN.match(text))
    if name == "hex":
        return bool(HEX_PATTERN.match(text))
    if name == "base64":
        return bool(text) and bool(BASE64_PATTERN.match(text))
    if name == "jwt":
        return bool(JWT_PATTERN.match(text))
    if name == "ipv4":
        return _is_ip(text, 4)
    if name == "ipv6":
        return _is_ip(text, 6)
    if name == "ssn":
        return validate_ssn(text)
    if name == "credit-card":
        return validate_credit_card(text)
    if name == "regex":
        if pattern is None:
            raise OperationError("the 'regex' format requires a pattern")
        try:
            return re.search(pattern, text) is not None
        except re.error as e:
            raise OperationError(f"Invalid regex pattern: {e}") from e
    raise OperationError(f"Unknown format '{format_name}'. Supported formats: {', '.join(SUPPORTED_FORMATS)}")


def validate_format(secret: SecretValue, format_name: str, pattern: str | None = None) -> bool:
    """Check a text secret against a named format without exposing it."""
    secret = _require_secret(secret)
    if secret.kind is not SecretKind.STRING:
        raise OperationError(f"format validation needs a secret_string, got secret_{secret.kind.value}")
    return check_format(secret.reveal(), format_name, pattern)


def info(secret: SecretValue) -> dict[str, Any]:
    """Non-sensitive metadata about a secret."""
    secret = _require_secret(secret)
    details: dict[str, Any] = {
        "type": secret.kind.type_name,
        "kind": secret.kind.value,
        "has_custom_template": secret.template_override is not None,
        "wiped": secret.wiped,
    }
    if secret.length is not None:
        details["length"] = secret.length
    return details
