"""Secret wrapper - redacted-by-default values with a policy-checked template engine."""

__version__ = "0.1.0"

from .models import PluginConfig, RedactionConfig, SecurityConfig, PartialRedactionConfig
from .config_manager import ConfigManager
from .secret import SecretValue, wrap, wrap_with, reveal, render, equals, type_name
from .template_parser import Template, compile_template
from .types import SecretKind, RedactionContext

__all__ = [
    "PluginConfig",
    "RedactionConfig",
    "SecurityConfig",
    "PartialRedactionConfig",
    "ConfigManager",
    "SecretValue",
    "wrap",
    "wrap_with",
    "reveal",
    "render",
    "equals",
    "type_name",
    "Template",
    "compile_template",
    "SecretKind",
    "RedactionContext",
]
