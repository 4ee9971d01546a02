"""Backend discovery and health command."""

from __future__ import annotations

from contextlib import nullcontext
from typing import Any, Dict

import typer

from fitlink.commands.common import get_state, print_json_payload, run_operation
from fitlink.core.client import BackendClient
from fitlink.core.discovery import candidate_urls


def probe_command(ctx: typer.Context) -> None:
    """Discover a backend and run its health check."""
    state = get_state(ctx)

    async def _probe(client: BackendClient) -> Dict[str, Any]:
        found = await client.initialize()
        healthy = await client.check_health() if found else False
        return {
            "baseUrl": client.base_url,
            "healthy": healthy,
            "network": client.network_status.to_dict(),
        }

    status_ctx = state.console.status("Probing backend...") if not state.plain_output else nullcontext()
    with status_ctx:
        payload = run_operation(state, _probe, initialize=False)

    if state.json_output:
        print_json_payload(state, payload)
    elif state.plain_output:
        typer.echo(f"base_url\t{payload['baseUrl'] or '-'}")
        typer.echo(f"healthy\t{str(payload['healthy']).lower()}")
    elif payload["baseUrl"]:
        verdict = "[green]healthy[/green]" if payload["healthy"] else "[red]unhealthy[/red]"
        state.console.print(f"Backend {payload['baseUrl']} is {verdict}")
    else:
        tried = state.base_url or ", ".join(candidate_urls(state.config))
        state.console.print(f"No backend found (tried {tried})")

    if not payload["healthy"]:
        raise typer.Exit(code=1)
