"""Semantic validation for secret wrapper configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .exceptions import ConfigValidationError, TemplateSyntaxError
from .template_parser import compile_template

if TYPE_CHECKING:
    from .models import PluginConfig

logger = logging.getLogger(__name__)

SUSPICIOUS_WORDS = ("pass", "key", "secret", "token", "auth")


@dataclass(frozen=True)
class Violation:
    """One violated rule."""

    field: str
    rule: str

    def __str__(self) -> str:
        return f"{self.field}: {self.rule}"


Violations = list[Violation]


def semantic_validate(config: PluginConfig) -> Violations:
    """
    Perform semantic validation on a configuration.

    Args:
        config: The configuration to validate

    Returns:
        A list of violations, empty if valid
    """
    violations = []

    violations.extend(validate_security_level(config))
    violations.extend(validate_custom_text(config))
    violations.extend(validate_templates(config))
    violations.extend(validate_partial_redaction(config))

    return violations


def validate_config(config: PluginConfig) -> None:
    """Raise ``ConfigValidationError`` if ``config`` breaks any rule."""
    violations = semantic_validate(config)
    if violations:
        first = violations[0]
        for violation in violations:
            logger.warning("Configuration rejected: %s", violation)
        raise ConfigValidationError(first.field, first.rule, [str(v) for v in violations])


def validate_security_level(config: PluginConfig) -> Violations:
    """
    Validate the constraints a paranoid security level imposes.

    Rules:
    - partial redaction must be disabled and disallowed
    - unredacted display must be off
    - templates must not be allowed to read secret content
    - custom texts must not hint at what the secret is
    """
    violations = []
    if config.security.level != "paranoid":
        return violations

    if config.redaction.partial.enabled:
        violations.append(
            Violation("redaction.partial.enabled", "partial redaction is forbidden at paranoid security level")
        )
    if config.security.allow_partial_redaction:
        violations.append(
            Violation(
                "security.allow_partial_redaction",
                "partial redaction cannot be allowed at paranoid security level",
            )
        )
    if config.redaction.show_unredacted:
        violations.append(
            Violation("redaction.show_unredacted", "unredacted display is forbidden at paranoid security level")
        )
    if not config.redaction.mask_secret:
        violations.append(
            Violation("redaction.mask_secret", "secret content masking cannot be disabled at paranoid security level")
        )

    for field, text in config.redaction.custom_template_texts().items():
        try:
            lowered = compile_template(text).literal_text.lower()
        except TemplateSyntaxError:
            continue  # reported by validate_templates
        for word in SUSPICIOUS_WORDS:
            if word in lowered:
                violations.append(
                    Violation(field, "custom redaction text may reveal information about the secret type")
                )
                break

    return violations


def validate_custom_text(config: PluginConfig) -> Violations:
    """
    Validate user-supplied redaction texts.

    Rules:
    - the custom style needs custom_text
    - no text may exceed max_custom_text_length characters
    """
    violations = []
    redaction = config.redaction
    limit = config.security.max_custom_text_length

    if redaction.style == "custom" and redaction.custom_text is None:
        violations.append(Violation("redaction.custom_text", "custom redaction style requires custom_text"))

    for field, text in redaction.custom_template_texts().items():
        if len(text) > limit:
            violations.append(Violation(field, f"custom redaction text too long: {len(text)} > {limit}"))

    return violations


def validate_templates(config: PluginConfig) -> Violations:
    """
    Validate every configured template.

    Rules:
    - each template must compile
    - templates reaching secret_string need show_unredacted or mask_secret disabled
    """
    violations = []
    redaction = config.redaction
    content_allowed = redaction.show_unredacted or not redaction.mask_secret

    texts = {"redaction.default_template": redaction.default_template_text()}
    texts.update(redaction.custom_template_texts())

    for field, text in texts.items():
        try:
            template = compile_template(text)
        except TemplateSyntaxError as e:
            violations.append(Violation(field, f"template does not compile: {e}"))
            continue
        if template.uses_secret_string and not content_allowed:
            violations.append(
                Violation(
                    field,
                    "template references secret_string; requires show_unredacted or mask_secret = false",
                )
            )

    return violations


def validate_partial_redaction(config: PluginConfig) -> Violations:
    """
    Validate partial redaction bounds.

    Rules (only when partial redaction is enabled):
    - security.allow_partial_redaction must be set
    - show_first + show_last must not exceed max_reveal
    - min_length must be at least security.min_partial_redaction_length
    """
    violations = []
    partial = config.redaction.partial
    security = config.security

    if not partial.enabled:
        return violations

    if not security.allow_partial_redaction:
        violations.append(
            Violation("redaction.partial.enabled", "partial redaction requires allow_partial_redaction")
        )

    total_reveal = partial.show_first + partial.show_last
    if total_reveal > partial.max_reveal:
        violations.append(
            Violation(
                "redaction.partial.show_first",
                f"total partial reveal {total_reveal} > max allowed {partial.max_reveal}",
            )
        )

    if partial.min_length < security.min_partial_redaction_length:
        violations.append(
            Violation(
                "redaction.partial.min_length",
                f"minimum partial redaction length {partial.min_length} < "
                f"security minimum {security.min_partial_redaction_length}",
            )
        )

    return violations
