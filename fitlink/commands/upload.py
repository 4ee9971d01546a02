"""Video upload command."""

from __future__ import annotations

from contextlib import nullcontext
from pathlib import Path

import typer
from rich.progress import BarColumn, DownloadColumn, Progress, TextColumn, TransferSpeedColumn

from fitlink.commands.common import get_state, print_json_payload, run_operation
from fitlink.core.client import BackendClient
from fitlink.core.models import AnalysisResult, UploadProgress


def upload_command(
    ctx: typer.Context,
    video: Path = typer.Argument(..., exists=True, dir_okay=False, help="Recorded exercise video"),
    exercise: str = typer.Option(..., "--exercise", "-e", help="Exercise type, e.g. squat"),
) -> None:
    """Upload a recorded video for full analysis."""
    state = get_state(ctx)
    show_bar = not (state.plain_output or state.json_output)

    progress = (
        Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            console=state.console,
            transient=True,
        )
        if show_bar
        else nullcontext()
    )

    with progress:
        task_id = progress.add_task(f"Uploading {video.name}", total=video.stat().st_size) if show_bar else None

        def on_progress(update: UploadProgress) -> None:
            if show_bar:
                progress.update(task_id, completed=update.loaded, total=update.total)

        async def _upload(client: BackendClient) -> AnalysisResult:
            return await client.upload_video(video, exercise, on_progress=on_progress)

        result = run_operation(state, _upload)

    payload = result.to_dict()
    if state.json_output:
        print_json_payload(state, payload)
        return

    if state.plain_output:
        typer.echo(f"session_id\t{result.session_id}")
        typer.echo(f"exercise\t{result.exercise_type}")
        typer.echo(f"reps\t{result.total_reps}")
        typer.echo(f"accuracy\t{result.accuracy:.1f}")
        typer.echo(f"duration\t{result.duration:.1f}")
        typer.echo(f"calories\t{result.calories:.1f}")
        for item in result.form_feedback:
            typer.echo(f"feedback\t{item.severity}\t{item.message}")
        return

    state.console.print(
        f"Session {result.session_id}: {result.total_reps} reps of {result.exercise_type}, "
        f"{result.accuracy:.0f}% accuracy, {result.calories:.0f} kcal"
    )
    for item in result.form_feedback:
        state.console.print(f"  ({item.severity}) {item.message}", markup=False)
    for tip in result.recommendations:
        state.console.print(f"  - {tip}", markup=False)
