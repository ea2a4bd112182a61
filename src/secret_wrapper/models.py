"""Configuration models for the secret wrapper."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .types import (
    DEFAULT_HASH_SALT,
    STYLE_TEMPLATES,
    UNTYPED_TEMPLATE,
    RedactionContext,
    SecretKind,
)

RedactionStyle = Literal["typed_brackets", "simple", "asterisks", "brackets", "custom"]
SecurityLevel = Literal["minimal", "standard", "paranoid"]


class PartialRedactionConfig(BaseModel):
    """Partial redaction settings for text secrets."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    show_first: int = Field(default=4, ge=0)
    show_last: int = Field(default=4, ge=0)
    min_length: int = Field(default=12, ge=0)
    max_reveal: int = Field(default=8, ge=0)
    use_hash: bool = False
    hash_salt: str = DEFAULT_HASH_SALT


class RedactionConfig(BaseModel):
    """How secrets are rendered for display."""

    model_config = ConfigDict(frozen=True)

    style: RedactionStyle = "typed_brackets"
    custom_text: str | None = None
    redaction_template: str | None = None  # wins over style when set
    show_type_info: bool = True
    per_type: dict[SecretKind, str] = Field(default_factory=dict)
    per_context: dict[RedactionContext, str] = Field(default_factory=dict)
    show_unredacted: bool = False
    mask_secret: bool = True
    partial: PartialRedactionConfig = Field(default_factory=PartialRedactionConfig)

    def default_template_text(self) -> str:
        """Template text used when no override applies."""
        if self.redaction_template is not None:
            return self.redaction_template
        if self.style == "custom":
            return self.custom_text or UNTYPED_TEMPLATE
        if self.style == "typed_brackets" and not self.show_type_info:
            return UNTYPED_TEMPLATE
        return STYLE_TEMPLATES[self.style]

    def template_for(self, kind: SecretKind, context: RedactionContext) -> str:
        """Resolve template text: per-type, then per-context, then default."""
        if kind in self.per_type:
            return self.per_type[kind]
        if context in self.per_context:
            return self.per_context[context]
        return self.default_template_text()

    def custom_template_texts(self) -> dict[str, str]:
        """Every user-supplied template text keyed by its dotted field name."""
        texts: dict[str, str] = {}
        if self.style == "custom" and self.custom_text is not None:
            texts["redaction.custom_text"] = self.custom_text
        if self.redaction_template is not None:
            texts["redaction.redaction_template"] = self.redaction_template
        for kind, text in self.per_type.items():
            texts[f"redaction.per_type.{kind.value}"] = text
        for context, text in self.per_context.items():
            texts[f"redaction.per_context.{context.value}"] = text
        return texts


class SecurityConfig(BaseModel):
    """Security policy that bounds what redaction may disclose."""

    model_config = ConfigDict(frozen=True)

    level: SecurityLevel = "standard"
    audit_config_changes: bool = True
    max_custom_text_length: int = Field(default=50, ge=0)
    allow_partial_redaction: bool = False
    min_partial_redaction_length: int = Field(default=16, ge=0)


class PluginConfig(BaseModel):
    """Effective configuration shared by every render operation."""

    model_config = ConfigDict(frozen=True)

    version: str = "1.0"
    redaction: RedactionConfig = Field(default_factory=RedactionConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)

    def to_document(self) -> dict[str, Any]:
        """Plain mapping suitable for YAML persistence."""
        return self.model_dump(mode="json", exclude_none=True)
