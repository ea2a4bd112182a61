"""Exceptions raised by the secret wrapper.

Exception Hierarchy:
    SecretWrapperError (base)
    ├── WrapError
    │   ├── UnsupportedKindError
    │   └── EmptyInputError
    ├── TemplateError
    │   ├── TemplateSyntaxError
    │   └── TemplateRuntimeError
    ├── ConfigError
    │   ├── ConfigValidationError
    │   ├── ConfigIoError
    │   └── ConfigEnvironmentError
    ├── RevealOnNonSecret
    │   └── WipedSecretError
    └── OperationError

None of these messages ever include secret content.
"""

from __future__ import annotations


class SecretWrapperError(Exception):
    """Base exception for all secret wrapper errors."""


class WrapError(SecretWrapperError):
    """A host value could not be wrapped."""


class UnsupportedKindError(WrapError):
    """The value is of a kind outside the closed set of secret kinds."""

    def __init__(self, kind_name: str) -> None:
        self.kind_name = kind_name
        super().__init__(
            f"Unsupported value kind '{kind_name}'. Supported kinds: "
            "string, int, bool, float, binary, date, list, record"
        )


class EmptyInputError(WrapError):
    """No value was supplied to wrap."""

    def __init__(self) -> None:
        super().__init__("No value to wrap")


class TemplateError(SecretWrapperError):
    """Base class for redaction template errors."""


class TemplateSyntaxError(TemplateError):
    """Malformed template text, reported at compile time.

    Attributes:
        position: Character offset in the template text where the error was found
        detail: Human-readable description of the problem
    """

    def __init__(self, position: int, detail: str) -> None:
        self.position = position
        self.detail = detail
        super().__init__(f"{detail} at position {position}")


class TemplateRuntimeError(TemplateError):
    """A compiled template failed while rendering.

    Compiled templates are type-checked against the function library, so this
    points at a defect in a library function rather than at user input.
    """

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class ConfigError(SecretWrapperError):
    """Base class for configuration errors."""


class ConfigValidationError(ConfigError):
    """A configuration violates a validation rule.

    Attributes:
        field: Dotted name of the offending field
        rule: Description of the violated rule
        violations: Every violation found, first one included
    """

    def __init__(self, field: str, rule: str, violations: list[str] | None = None) -> None:
        self.field = field
        self.rule = rule
        self.violations = violations or [f"{field}: {rule}"]
        message = f"Invalid configuration: {field}: {rule}"
        if len(self.violations) > 1:
            message += f" (and {len(self.violations) - 1} more)"
        super().__init__(message)


class ConfigIoError(ConfigError):
    """Configuration could not be read from or written to its store."""

    def __init__(self, path: object, detail: str) -> None:
        self.path = path
        self.detail = detail
        super().__init__(f"Configuration I/O error for '{path}': {detail}")


class ConfigEnvironmentError(ConfigError):
    """An environment override holds an unusable value."""

    def __init__(self, variable: str, detail: str) -> None:
        self.variable = variable
        self.detail = detail
        super().__init__(f"Invalid value for environment variable {variable}: {detail}")


class RevealOnNonSecret(SecretWrapperError):
    """Reveal or comparison was attempted on something that is not a secret."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class WipedSecretError(RevealOnNonSecret):
    """The secret's storage has already been wiped."""

    def __init__(self, kind: str) -> None:
        super().__init__(f"secret_{kind} has been wiped and can no longer be revealed")


class OperationError(SecretWrapperError):
    """A secret operation was given arguments it cannot work with."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)
