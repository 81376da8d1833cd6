"""
run.py - Apply one token operation to a batch of JSON records.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from rich.console import Console
from rich.table import Table

from tokenbatch_core.config import TokenBatchConfig, load_config
from tokenbatch_core.errors import TokenBatchError
from tokenbatch_core.operations import OPERATION_INFO, Operation
from tokenbatch_core.processor import (
    BatchSummary,
    FieldRef,
    StaticParameters,
    items_from_payloads,
    process_batch,
)
from tokenbatch_core.tokenizer import resolve_tokenizer

from ..util import read_batch

logger = logging.getLogger(__name__)

console = Console(stderr=True)


def _build_parameters(
    operation: Operation,
    config: TokenBatchConfig,
    input_string: Optional[str],
    input_field: str,
    tokens_field: str,
    destination_key: Optional[str],
) -> StaticParameters:
    values: Dict[str, Any] = {
        "inputString": input_string if input_string is not None else FieldRef(input_field, ""),
        "inputTokens": FieldRef(tokens_field),
        "maxTokens": config.max_tokens,
        "destinationKey": destination_key if destination_key is not None else config.destination_key,
        "errorTokenLimit": config.error_token_limit,
    }
    return StaticParameters({name: value for name, value in values.items() if name in operation.parameters})


def _print_summary(summary: BatchSummary, encoding: str) -> None:
    table = Table(title=f"{OPERATION_INFO[summary.operation].name} ({encoding})")
    table.add_column("Records", justify="right")
    table.add_column("Succeeded", justify="right", style="green")
    table.add_column("Skipped", justify="right", style="yellow")
    table.add_column("Skipped indexes")
    table.add_row(
        str(summary.total),
        str(summary.succeeded),
        str(summary.skipped),
        ", ".join(str(i) for i in summary.skipped_indexes) or "-",
    )
    console.print(table)


def run(
    operation: str = typer.Argument(..., help="encode, decode, countTokens, isWithinTokenLimit or sliceMatchingTokenLimit"),
    input_path: Optional[Path] = typer.Argument(None, help="JSON array or JSON Lines batch file (default: stdin)"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the output batch to this file"),
    input_string: Optional[str] = typer.Option(None, "--input-string", help="Literal text used for every record"),
    input_field: str = typer.Option("text", "--input-field", help="Record key holding the text to process"),
    tokens_field: str = typer.Option("tokens", "--tokens-field", help="Record key holding tokens to decode"),
    max_tokens: Optional[int] = typer.Option(None, "--max-tokens", help="Token limit (default from config: 2048)"),
    destination_key: Optional[str] = typer.Option(None, "--destination-key", help="Key to write results to"),
    error_token_limit: bool = typer.Option(False, "--error-token-limit", help="Fail records exceeding the token limit"),
    continue_on_fail: bool = typer.Option(False, "--continue-on-fail", help="Collect failed records instead of aborting"),
    encoding: Optional[str] = typer.Option(None, "--encoding", help="tiktoken encoding name"),
    model: Optional[str] = typer.Option(None, "--model", help="Model name used to pick the encoding"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Path to TOML configuration file"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Do not print the summary table"),
) -> None:
    """Apply one token operation to every record of a batch."""
    try:
        selected = Operation.parse(operation)
        config = load_config(config_path=config_path)
        settings = config.to_dict()
        if max_tokens is not None:
            settings["max_tokens"] = max_tokens
        if error_token_limit:
            settings["error_token_limit"] = True
        if continue_on_fail:
            settings["continue_on_fail"] = True
        if model is not None:
            # An explicit model picks its own encoding unless --encoding is also given.
            settings["model"] = model
            settings["encoding"] = encoding
        elif encoding is not None:
            settings["encoding"] = encoding
        config = TokenBatchConfig(**settings)

        tokenizer, encoding_name = resolve_tokenizer(model_name=config.model, encoding_name=config.encoding)
    except TokenBatchError as e:
        typer.echo(f"Error: {e.get_detailed_message()}", err=True)
        raise typer.Exit(2)

    try:
        payloads = read_batch(input_path)
    except (OSError, ValueError) as e:
        typer.echo(f"Error reading batch: {e}", err=True)
        raise typer.Exit(2)

    parameters = _build_parameters(selected, config, input_string, input_field, tokens_field, destination_key)
    summary = BatchSummary(operation=selected)
    logger.debug(f"Running {selected.value} over {len(payloads)} records with {parameters!r}")

    try:
        result = process_batch(
            items_from_payloads(payloads),
            selected,
            tokenizer,
            parameters=parameters,
            continue_on_fail=config.continue_on_fail,
            summary=summary,
        )
    except TokenBatchError as e:
        typer.echo(f"Error: {e.get_detailed_message()}", err=True)
        raise typer.Exit(1)

    rendered = json.dumps([item.to_dict() for item in result], indent=2, ensure_ascii=False)
    if output is not None:
        output.write_text(rendered + "\n", encoding="utf-8")
    else:
        typer.echo(rendered)

    if not quiet:
        _print_summary(summary, encoding_name)


def list_operations() -> None:
    """List the available operations."""
    table = Table(title="Operations")
    table.add_column("Operation", no_wrap=True)
    table.add_column("Name")
    table.add_column("Default key", no_wrap=True)
    table.add_column("Parameters")
    table.add_column("Description")
    for op in Operation:
        info = OPERATION_INFO[op]
        table.add_row(
            op.value,
            info.name,
            op.default_destination_key,
            ", ".join(sorted(op.parameters)),
            info.description,
        )
    Console().print(table)
