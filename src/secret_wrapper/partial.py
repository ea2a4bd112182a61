"""Partial redaction strategies.

Both strategies are pure functions of ``(plaintext, config)``. They return
``None`` whenever partial redaction must not apply, and the caller then falls
back to full redaction.
"""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING

from .types import DEFAULT_MASK_CHAR, HASH_PREFIX_LENGTH

if TYPE_CHECKING:
    from .models import PartialRedactionConfig


def apply_partial_redaction(plaintext: str, config: PartialRedactionConfig) -> str | None:
    """Apply the strategy selected by ``config.use_hash``."""
    if not config.enabled:
        return None
    if config.use_hash:
        return hash_window(plaintext, config)
    return char_window(plaintext, config)


def char_window(plaintext: str, config: PartialRedactionConfig, mask_char: str = DEFAULT_MASK_CHAR) -> str | None:
    """Reveal ``show_first`` leading and ``show_last`` trailing characters.

    Never applies to secrets shorter than ``min_length``, to windows wider
    than ``max_reveal``, or when the window would cover the whole secret.
    """
    length = len(plaintext)
    if length < config.min_length:
        return None

    reveal = config.show_first + config.show_last
    if reveal > config.max_reveal or reveal >= length:
        return None

    head = plaintext[:config.show_first]
    tail = plaintext[length - config.show_last:] if config.show_last else ""
    return head + mask_char * (length - reveal) + tail


def hash_digest(plaintext: str, salt: str) -> str:
    """Hex SHA-256 digest of ``salt`` followed by ``plaintext``."""
    digest = hashlib.sha256()
    digest.update(salt.encode("utf-8"))
    digest.update(plaintext.encode("utf-8"))
    return digest.hexdigest()


def hash_window(plaintext: str, config: PartialRedactionConfig) -> str | None:
    """Render a digest prefix followed by the original length, e.g. ``1f2e3d4c...(19)``."""
    if len(plaintext) < config.min_length:
        return None
    prefix = hash_digest(plaintext, config.hash_salt)[:HASH_PREFIX_LENGTH]
    return f"{prefix}...({len(plaintext)})"
