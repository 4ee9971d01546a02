"""Frame analysis and synthetic pose commands."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from fitlink.commands.common import get_state, print_json_payload, run_operation
from fitlink.core.fallback import FallbackSynthesizer
from fitlink.core.models import PoseData
from fitlink.core.state import CLIState
from fitlink.utils.parsing import encode_frame


def render_pose(state: CLIState, pose: PoseData) -> None:
    """Print pose data in the active output mode."""
    if state.json_output:
        print_json_payload(state, pose.to_dict())
        return

    if state.plain_output:
        typer.echo(f"stage\t{pose.stage.value}")
        typer.echo(f"rep\t{pose.current_rep}")
        typer.echo(f"confidence\t{pose.confidence:.3f}")
        typer.echo(f"form_score\t{pose.form_score:.1f}")
        typer.echo(f"degraded\t{str(pose.degraded).lower()}")
        for warning in pose.warnings:
            typer.echo(f"warning\t{warning}")
        typer.echo("name\tx\ty\tvisibility")
        for kp in pose.keypoints:
            visibility = f"{kp.visibility:.2f}" if kp.visibility is not None else "-"
            typer.echo(f"{kp.name}\t{kp.x:.3f}\t{kp.y:.3f}\t{visibility}")
        return

    title = f"Pose: {pose.stage.value}, rep {pose.current_rep}"
    if pose.degraded:
        title += " (synthetic)"
    table = Table(title=title)
    table.add_column("Keypoint")
    table.add_column("X", justify="right")
    table.add_column("Y", justify="right")
    table.add_column("Visibility", justify="right")
    for kp in pose.keypoints:
        table.add_row(
            kp.name,
            f"{kp.x:.3f}",
            f"{kp.y:.3f}",
            f"{kp.visibility:.2f}" if kp.visibility is not None else "-",
        )
    state.console.print(table)
    state.console.print(f"Confidence {pose.confidence:.2f}, form score {pose.form_score:.0f}")
    for warning in pose.warnings:
        state.console.print(f"[yellow]! {warning}[/yellow]")


def frame_command(
    ctx: typer.Context,
    image: Path = typer.Argument(..., exists=True, dir_okay=False, help="Image file to analyze"),
    exercise: str = typer.Option(..., "--exercise", "-e", help="Exercise type, e.g. squat"),
) -> None:
    """Analyze a single camera frame."""
    state = get_state(ctx)
    frame_data = encode_frame(image)
    pose = run_operation(state, lambda client: client.analyze_frame(frame_data, exercise))
    render_pose(state, pose)


def synthetic_command(
    ctx: typer.Context,
    exercise: str = typer.Argument(..., help="Exercise type, e.g. squat"),
    at: Optional[float] = typer.Option(None, "--at", help="Epoch seconds to synthesize for (default: now)"),
) -> None:
    """Print the synthetic pose used when the backend is unreachable."""
    state = get_state(ctx)
    pose = FallbackSynthesizer().synthetic_pose_data(exercise, now=at)
    render_pose(state, pose)
