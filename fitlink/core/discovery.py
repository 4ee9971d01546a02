"""Default backend discovery: probe candidate base URLs in order."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

import requests

from fitlink.core.config import resolve_base_url
from fitlink.core.constants import CANDIDATE_HOSTS, DEFAULT_PORT

logger = logging.getLogger(__name__)

Discovery = Callable[[], Awaitable[Optional[str]]]


def candidate_urls(config: Dict[str, Any]) -> List[str]:
    """Configured candidates first, then the well-known local hosts, deduplicated."""
    backend_cfg = config.get("backend", {})
    port = int(backend_cfg.get("port", DEFAULT_PORT))
    urls = [str(url).rstrip("/") for url in backend_cfg.get("candidate_urls", []) if url]
    urls.extend(f"http://{host}:{port}" for host in CANDIDATE_HOSTS)
    return list(dict.fromkeys(urls))


def probe_url(url: str, timeout: float) -> Tuple[bool, Optional[str]]:
    """Return (reachable, error) for a GET on the backend root."""
    try:
        response = requests.get(
            f"{url}/",
            headers={"Accept": "application/json", "Content-Type": "application/json"},
            timeout=timeout,
        )
    except requests.Timeout:
        return False, f"Timeout (>{timeout}s)"
    except requests.RequestException as exc:
        return False, str(exc)

    if not response.ok:
        return False, f"HTTP {response.status_code}"
    try:
        response.json()
    except ValueError:
        return False, "Response is not JSON"
    return True, None


async def discover_backend(candidates: Sequence[str], timeout: float = 5.0) -> Optional[str]:
    """Probe ``candidates`` sequentially and return the first reachable one."""
    for url in candidates:
        reachable, error = await asyncio.to_thread(probe_url, url, timeout)
        if reachable:
            logger.info("Found working backend at %s", url)
            return url
        logger.debug("Backend probe %s failed: %s", url, error)
    logger.info("No working backend found on %d candidate URLs", len(candidates))
    return None


def discovery_from_config(config: Dict[str, Any]) -> Discovery:
    """Build the discovery callable for a loaded config.

    A pinned base URL (config or ``FITLINK_BACKEND_URL``) skips probing.
    """
    pinned = resolve_base_url(config)
    timeout = float(config.get("timeouts", {}).get("probe_seconds", 5))

    async def discover() -> Optional[str]:
        if pinned:
            return pinned
        return await discover_backend(candidate_urls(config), timeout=timeout)

    return discover
