"""Session summary command."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import typer

from fitlink.commands.common import get_state, print_json_payload, run_operation
from fitlink.utils.parsing import build_session_summary, load_summary_input


def summary_command(
    ctx: typer.Context,
    file: Optional[Path] = typer.Option(None, help="JSON/YAML file with the session summary"),
    stdin: bool = typer.Option(False, "--stdin", help="Read the session summary from stdin"),
    exercise: Optional[str] = typer.Option(None, "--exercise", "-e", help="Exercise type"),
    duration: Optional[float] = typer.Option(None, help="Session duration in seconds"),
    reps: Optional[int] = typer.Option(None, help="Total repetitions"),
    accuracy: Optional[float] = typer.Option(None, help="Average accuracy 0-100"),
    user_id: Optional[str] = typer.Option(None, "--user-id", help="User identifier"),
) -> None:
    """Submit a workout session summary."""
    state = get_state(ctx)

    stdin_text = sys.stdin.read() if stdin else ""
    session = load_summary_input(file_path=file, read_stdin=stdin, stdin_text=stdin_text)

    if not session and exercise and duration is not None and reps is not None and accuracy is not None:
        try:
            session = build_session_summary(exercise, duration, reps, accuracy, user_id=user_id)
        except ValueError as exc:
            raise typer.BadParameter(str(exc)) from exc

    if not session:
        raise typer.BadParameter(
            "Provide --file, --stdin, or --exercise/--duration/--reps/--accuracy"
        )

    result = run_operation(state, lambda client: client.submit_session_summary(session))

    if state.json_output:
        print_json_payload(state, result.to_dict())
        return

    if state.plain_output:
        typer.echo("status\tsubmitted")
        typer.echo(f"session_id\t{result.session_id or '-'}")
        return

    state.console.print(f"Submitted session summary {result.session_id or ''}".rstrip())
