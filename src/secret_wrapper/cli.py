"""Command-line interface for the secret wrapper."""

from __future__ import annotations

import sys
from pathlib import Path  # noqa: TC003
from typing import NoReturn

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .commands import SecretCommands
from .config_manager import ConfigManager, flatten_document
from .exceptions import SecretWrapperError
from .secret import render
from .store import DEFAULT_CONFIG_PATH, ConfigStore
from .types import RedactionContext

app = typer.Typer(help="Secret wrapper configuration and redaction tools")
config_app = typer.Typer(help="Inspect and manage the persisted configuration")
app.add_typer(config_app, name="config")
console = Console()

PREVIEW_KINDS = ("string", "int", "float", "bool")


@app.callback()
def main(
    ctx: typer.Context,
    config_file: Path = typer.Option(
        DEFAULT_CONFIG_PATH,
        "--config",
        "-c",
        envvar="SECRET_WRAPPER_CONFIG",
        help="Path to the YAML configuration file",
    ),
) -> None:
    """Secret wrapper configuration and redaction tools."""
    ctx.obj = config_file


def _load_commands(ctx: typer.Context, load: bool = True) -> SecretCommands:
    if not load:
        return SecretCommands(ConfigManager(ConfigStore(ctx.obj)))
    return SecretCommands(ConfigManager.from_path(ctx.obj))


def _fail(e: Exception) -> NoReturn:
    console.print(f"[red]Error: {escape(str(e))}[/red]")
    if isinstance(e, SecretWrapperError) and getattr(e, "violations", None):
        for violation in e.violations[1:]:
            console.print(f"  [red]• {escape(str(violation))}[/red]")
    sys.exit(1)


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the effective configuration."""
    try:
        commands = _load_commands(ctx)
        document = commands.config_show()
    except SecretWrapperError as e:
        _fail(e)

    config_file = document.pop("config_file", None)
    table = Table(title="Effective Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    for key, value in flatten_document(document).items():
        if key == "redaction.partial.hash_salt":
            value = "<masked>"
        table.add_row(key, escape(str(value)))
    console.print(table)
    if config_file:
        console.print(f"Configuration file: {config_file}")


@config_app.command("reset")
def config_reset(
    ctx: typer.Context,
    confirm: bool = typer.Option(False, "--confirm", help="Confirm resetting every setting to its default"),
    backup: bool = typer.Option(False, "--backup", help="Copy the current configuration aside first"),
) -> None:
    """Reset the configuration to defaults."""
    if not confirm:
        console.print("[red]Error: This operation will reset all configuration to defaults. Use --confirm to proceed[/red]")
        sys.exit(1)
    try:
        backup_path = _load_commands(ctx, load=False).config_reset(backup=backup)
    except SecretWrapperError as e:
        _fail(e)

    if backup_path is not None:
        console.print(f"[blue]Backup written to {backup_path}[/blue]")
    console.print("[green]✓ Configuration reset to defaults[/green]")


@config_app.command("validate")
def config_validate(ctx: typer.Context) -> None:
    """Validate the effective configuration."""
    try:
        commands = _load_commands(ctx)
    except SecretWrapperError as e:
        _fail(e)

    violations = commands.config_validate()
    if violations:
        console.print("[red]Validation failed:[/red]")
        for violation in violations:
            console.print(f"  [red]• {escape(str(violation))}[/red]")
        sys.exit(1)
    console.print("[green]✓ Configuration is valid[/green]")


@config_app.command("export")
def config_export(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Destination YAML file"),
) -> None:
    """Export the effective configuration to a file."""
    try:
        _load_commands(ctx).config_export(path)
    except SecretWrapperError as e:
        _fail(e)
    console.print(f"[green]✓ Configuration exported to {path}[/green]")


@config_app.command("import")
def config_import(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="YAML file to import"),
) -> None:
    """Import a configuration file, replacing the persisted one."""
    try:
        _load_commands(ctx).config_import(path)
    except SecretWrapperError as e:
        _fail(e)
    console.print(f"[green]✓ Configuration imported from {path}[/green]")


@app.command()
def configure(
    ctx: typer.Context,
    style: str | None = typer.Option(
        None, "--redaction-style", help="typed_brackets, simple, asterisks, brackets or custom"
    ),
    custom_text: str | None = typer.Option(None, "--custom-text", help="Text used by the custom style"),
    template: str | None = typer.Option(None, "--template", help="Default redaction template"),
    security_level: str | None = typer.Option(None, "--security-level", help="minimal, standard or paranoid"),
    show_type_info: bool | None = typer.Option(None, "--show-type-info/--hide-type-info", help="Include the secret type"),
    mask_secret: bool | None = typer.Option(None, "--mask-secret/--no-mask-secret", help="Mask secret_string in templates"),
    partial: bool | None = typer.Option(None, "--partial/--no-partial", help="Enable partial redaction"),
    allow_partial: bool | None = typer.Option(
        None, "--allow-partial/--disallow-partial", help="Permit partial redaction at the security layer"
    ),
) -> None:
    """Change redaction and security settings."""
    redaction: dict = {}
    security: dict = {}
    if style is not None:
        if style == "custom" and custom_text is None:
            console.print("[red]Error: Custom redaction style requires --custom-text[/red]")
            sys.exit(1)
        redaction["style"] = style
    if custom_text is not None:
        redaction["custom_text"] = custom_text
    if template is not None:
        redaction["redaction_template"] = template
    if show_type_info is not None:
        redaction["show_type_info"] = show_type_info
    if mask_secret is not None:
        redaction["mask_secret"] = mask_secret
    if partial is not None:
        redaction["partial"] = {"enabled": partial}
    if security_level is not None:
        security["level"] = security_level
    if allow_partial is not None:
        security["allow_partial_redaction"] = allow_partial

    changes = {}
    if redaction:
        changes["redaction"] = redaction
    if security:
        changes["security"] = security
    if not changes:
        console.print("[yellow]No changes made[/yellow]")
        return

    try:
        config = _load_commands(ctx).configure(changes)
    except SecretWrapperError as e:
        _fail(e)

    console.print("[green]✓ Configuration updated successfully[/green]")
    console.print(f"Redaction style: {config.redaction.style}")
    console.print(f"Security level: {config.security.level}")


@app.command()
def preview(
    ctx: typer.Context,
    value: str = typer.Argument(..., help="Sample value to wrap"),
    template: str | None = typer.Option(None, "--template", "-t", help="Per-secret redaction template"),
    kind: str = typer.Option("string", "--kind", "-k", help="Interpret the value as string, int, float or bool"),
    context: RedactionContext = typer.Option(RedactionContext.DISPLAY, "--context", help="Rendering context"),
) -> None:
    """Render a sample value the way a secret would be displayed."""
    if kind not in PREVIEW_KINDS:
        console.print(f"[red]Error: Unknown kind '{kind}'. Valid options: {', '.join(PREVIEW_KINDS)}[/red]")
        sys.exit(1)
    try:
        sample = _parse_sample(value, kind)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)

    try:
        commands = _load_commands(ctx)
        with commands.wrap(sample, template) as secret:
            output = render(secret, context)
    except SecretWrapperError as e:
        _fail(e)

    console.print(output, markup=False, highlight=False)


def _parse_sample(value: str, kind: str) -> object:
    if kind == "int":
        return int(value)
    if kind == "float":
        return float(value)
    if kind == "bool":
        lowered = value.lower()
        if lowered not in ("true", "false"):
            raise ValueError(f"expected true or false, got '{value}'")
        return lowered == "true"
    return value


if __name__ == "__main__":
    app()
