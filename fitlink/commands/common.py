"""Shared command helpers."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler

from fitlink.core.client import BackendClient
from fitlink.core.discovery import Discovery
from fitlink.core.errors import BackendError, QueueDeferred
from fitlink.core.models import NetworkStatus
from fitlink.core.state import CLIState

T = TypeVar("T")

logger = logging.getLogger(__name__)


def get_state(ctx: typer.Context) -> CLIState:
    """Extract validated CLI state from Typer context."""
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=2)
    return state


def build_client(state: CLIState) -> BackendClient:
    """Client wired from config; ``--offline`` starts it disconnected."""
    discover: Optional[Discovery] = None
    if state.base_url:
        pinned = state.base_url.rstrip("/")

        async def _pinned() -> Optional[str]:
            return pinned

        discover = _pinned

    client = BackendClient(config=state.config, discover=discover)
    if state.offline:
        client.on_network_change(NetworkStatus(connected=False))
    return client


def print_json_payload(state: CLIState, payload: Any) -> None:
    """Print JSON payload with plain-mode fallback for piping."""
    if state.plain_output:
        typer.echo(json.dumps(payload, separators=(",", ":")))
        return
    state.console.print_json(data=payload)


def run_operation(
    state: CLIState,
    operation: Callable[[BackendClient], Awaitable[T]],
    initialize: bool = True,
) -> T:
    """Run one client coroutine to completion, mapping failures to exit codes."""

    async def _run() -> T:
        client = build_client(state)
        try:
            if initialize and not await client.initialize():
                logger.info("No reachable backend; continuing without one")
            return await operation(client)
        finally:
            await client.close()

    try:
        return asyncio.run(_run())
    except QueueDeferred as exc:
        report_error(state, "queued", str(exc), request_id=exc.request_id)
        raise typer.Exit(code=3)
    except BackendError as exc:
        report_error(state, "error", str(exc))
        raise typer.Exit(code=1)


def report_error(state: CLIState, status: str, message: str, **extra: Any) -> None:
    if state.json_output:
        print_json_payload(state, {"status": status, "message": message, **extra})
    elif state.plain_output:
        typer.echo(f"status\t{status}")
        typer.echo(f"message\t{message}")
        for key, value in extra.items():
            typer.echo(f"{key}\t{value}")
    else:
        state.console.print(f"{status.capitalize()}: {message}")


def configure_logging(state: CLIState) -> None:
    """Route library logging through a RichHandler on stderr."""
    log_console = Console(stderr=True, quiet=state.console.quiet, no_color=state.plain_output)
    handler = RichHandler(console=log_console, show_time=False, show_path=False, markup=False)
    logging.basicConfig(level=state.log_level, format="%(message)s", handlers=[handler], force=True)
