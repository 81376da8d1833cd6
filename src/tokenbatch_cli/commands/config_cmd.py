"""CLI commands for configuration management."""

import json
from pathlib import Path
from typing import Optional

import typer

from tokenbatch_core.config import create_example_config, load_config, write_config
from tokenbatch_core.errors import TokenBatchError
from tokenbatch_core.tokenizer import resolve_encoding_name

app = typer.Typer(help="Manage tokenbatch configuration")


@app.command("show")
def show_config(
    config_path: Optional[Path] = typer.Option(None, "--config", help="Path to TOML configuration file"),
    format: str = typer.Option("json", "--format", help="Output format (json, toml)"),
) -> None:
    """Show the effective configuration with environment overrides applied."""
    try:
        config = load_config(config_path=config_path)
    except TokenBatchError as e:
        typer.echo(f"Error loading configuration: {e}", err=True)
        raise typer.Exit(1)

    if format.lower() == "json":
        typer.echo(json.dumps(config.to_dict(), indent=2))
    elif format.lower() == "toml":
        import tomli_w

        data = {k: v for k, v in config.to_dict().items() if v is not None}
        typer.echo(tomli_w.dumps({"tokenbatch": data}))
    else:
        typer.echo(f"Error: Unsupported format '{format}'. Use json or toml.", err=True)
        raise typer.Exit(1)


@app.command("validate")
def validate_config(
    config_path: Optional[Path] = typer.Option(None, "--config", help="Path to TOML configuration file"),
) -> None:
    """Validate configuration."""
    try:
        config = load_config(config_path=config_path)
        encoding = resolve_encoding_name(model_name=config.model, encoding_name=config.encoding)
    except TokenBatchError as e:
        typer.echo(f"✗ Configuration validation failed: {e}", err=True)
        raise typer.Exit(1)

    typer.echo("✓ Configuration is valid")
    typer.echo(f"  Encoding: {encoding}")
    typer.echo(f"  Model: {config.model or '-'}")
    typer.echo(f"  Max tokens: {config.max_tokens}")
    typer.echo(f"  Destination key: {config.destination_key or 'operation default'}")
    typer.echo(f"  Error on token limit: {config.error_token_limit}")
    typer.echo(f"  Continue on fail: {config.continue_on_fail}")


@app.command("create-example")
def create_example(
    output_path: Path = typer.Option(Path("tokenbatch.toml"), "--output", help="Output path for example configuration file"),
    force: bool = typer.Option(False, "--force", help="Overwrite existing file"),
) -> None:
    """Create an example configuration file."""
    if output_path.exists() and not force:
        typer.echo(f"Error: File already exists: {output_path}. Use --force to overwrite.", err=True)
        raise typer.Exit(1)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(create_example_config(), encoding="utf-8")
    typer.echo(f"✓ Created example configuration: {output_path}")


@app.command("write")
def write(
    output_path: Path = typer.Argument(..., help="Output TOML path"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Configuration to start from"),
) -> None:
    """Write the effective configuration (defaults plus environment) as TOML."""
    try:
        write_config(load_config(config_path=config_path), output_path)
    except TokenBatchError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    typer.echo(f"✓ Wrote configuration: {output_path}")
