"""Entry point for fitlink."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from fitlink import __version__
from fitlink.commands.common import configure_logging
from fitlink.commands.config import config_command
from fitlink.commands.frame import frame_command, synthetic_command
from fitlink.commands.probe import probe_command
from fitlink.commands.summary import summary_command
from fitlink.commands.upload import upload_command
from fitlink.core.config import ConfigError, default_config_path, load_config
from fitlink.core.state import CLIState

app = typer.Typer(
    add_completion=False,
    help="Exercise-analysis backend client",
    invoke_without_command=True,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", help="Output JSON where available"),
    plain_output: bool = typer.Option(
        False,
        "--plain",
        help="Output plain text (no rich formatting/tables)",
    ),
    config: Optional[Path] = typer.Option(None, "--config", help="Path to config file"),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Use this backend URL instead of probing"),
    offline: bool = typer.Option(False, "--offline", help="Start with the network marked unavailable"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Quiet output"),
    version: bool = typer.Option(False, "--version", help="Show version and exit"),
) -> None:
    """Load config, set up logging and initialize global CLI state."""
    if version:
        typer.echo(__version__)
        raise typer.Exit(code=0)

    if json_output and plain_output:
        typer.echo("Options --json and --plain are mutually exclusive.")
        raise typer.Exit(code=2)

    cfg_path = (config or default_config_path()).expanduser().resolve()
    try:
        cfg = load_config(cfg_path)
    except ConfigError as exc:
        typer.echo(f"Config error: {exc}")
        raise typer.Exit(code=2)

    console = Console(
        quiet=quiet,
        no_color=plain_output,
        log_time=False,
        log_path=False,
    )
    state = CLIState(
        json_output=(json_output and not plain_output),
        plain_output=plain_output,
        verbose=verbose,
        offline=offline,
        config_path=cfg_path,
        config=cfg,
        console=console,
        base_url=base_url,
    )
    configure_logging(state)
    ctx.obj = state

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=0)


app.command("probe")(probe_command)
app.command("frame")(frame_command)
app.command("upload")(upload_command)
app.command("config")(config_command)
app.command("summary")(summary_command)
app.command("synthetic")(synthetic_command)


def main() -> None:
    """Console script entrypoint."""
    app()


if __name__ == "__main__":
    main()
