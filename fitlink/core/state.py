"""Runtime state shared by fitlink commands."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console


@dataclass
class CLIState:
    """Global CLI flags plus the loaded fitlink configuration."""

    json_output: bool
    plain_output: bool
    verbose: bool
    offline: bool
    config_path: Path
    config: Dict[str, Any]
    console: Console
    base_url: Optional[str] = None

    @property
    def log_level(self) -> int:
        if self.verbose:
            return logging.DEBUG
        name = str(self.config.get("logging", {}).get("level", "WARNING")).upper()
        level = logging.getLevelName(name)
        return level if isinstance(level, int) else logging.WARNING
