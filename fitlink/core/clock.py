"""Wall clock and timer seam."""

from __future__ import annotations

import asyncio
import time


class Clock:
    """Real time source; tests substitute a manual clock."""

    def now(self) -> float:
        """Current wall-clock time in epoch seconds."""
        return time.time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(seconds, 0.0))


SYSTEM_CLOCK = Clock()
