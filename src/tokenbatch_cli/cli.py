from __future__ import annotations

import typer

from .util import configure_logging, configure_stdio

app = typer.Typer(help="tokenbatch: BPE token operations over batches of JSON records")


@app.callback()
def _init(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging on stderr"),
):
    configure_stdio()
    configure_logging(verbose)


from .commands import config_cmd as config_cmd  # noqa: E402
from .commands import run as run_cmd  # noqa: E402

app.command(name="run")(run_cmd.run)
app.command(name="operations")(run_cmd.list_operations)
app.add_typer(config_cmd.app, name="config", help="Config inspection and validation")


def main():
    app()
