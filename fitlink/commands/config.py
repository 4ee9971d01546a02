"""Exercise config command."""

from __future__ import annotations

import json

import typer
from rich.table import Table

from fitlink.commands.common import get_state, print_json_payload, run_operation
from fitlink.core.constants import exercise_label


def config_command(
    ctx: typer.Context,
    exercise: str = typer.Argument(..., help="Exercise type, e.g. squat"),
) -> None:
    """Fetch analysis parameters for an exercise."""
    state = get_state(ctx)
    config = run_operation(state, lambda client: client.get_exercise_config(exercise))
    payload = config.to_dict()

    if state.json_output:
        print_json_payload(state, payload)
        return

    if state.plain_output:
        typer.echo(f"exercise\t{config.exercise_type}")
        typer.echo(f"degraded\t{str(config.degraded).lower()}")
        typer.echo(f"target_keypoints\t{','.join(config.target_keypoints)}")
        for key, value in config.thresholds.items():
            typer.echo(f"threshold.{key}\t{value}")
        for check in config.form_checks:
            typer.echo(f"form_check\t{check}")
        return

    title = exercise_label(config.exercise_type)
    if config.degraded:
        title += " (built-in defaults)"
    table = Table(title=title)
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("Target keypoints", ", ".join(config.target_keypoints))
    for key, value in config.thresholds.items():
        table.add_row(f"Threshold {key}", str(value))
    for key, value in config.feedback.items():
        table.add_row(f"Feedback {key}", json.dumps(value))
    if config.form_checks:
        table.add_row("Form checks", ", ".join(config.form_checks))
    state.console.print(table)
