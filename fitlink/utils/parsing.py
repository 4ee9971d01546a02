"""Parsing helpers for command input files."""

from __future__ import annotations

import base64
import json
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from fitlink.core.constants import ExerciseType


def load_summary_input(file_path: Optional[Path], read_stdin: bool, stdin_text: str = "") -> Dict[str, Any]:
    """Load a session summary object from file or stdin text."""
    raw_data: Any
    if file_path:
        text = file_path.read_text()
        if file_path.suffix.lower() in {".yaml", ".yml"}:
            raw_data = yaml.safe_load(text)
        else:
            raw_data = json.loads(text)
    elif read_stdin:
        text = stdin_text.strip()
        if not text:
            return {}
        try:
            raw_data = json.loads(text)
        except json.JSONDecodeError:
            raw_data = yaml.safe_load(text)
    else:
        return {}

    if isinstance(raw_data, dict):
        return raw_data
    if isinstance(raw_data, list):
        first = next((item for item in raw_data if isinstance(item, dict)), None)
        return first or {}
    return {}


def build_session_summary(
    exercise_type: str,
    duration: float,
    total_reps: int,
    average_accuracy: float,
    user_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Build a session summary payload from CLI flags."""
    if ExerciseType.parse(exercise_type) is None:
        raise ValueError(f"Unsupported exercise: {exercise_type}")
    if duration < 0 or total_reps < 0:
        raise ValueError("Duration and reps must be non-negative")
    if not 0 <= average_accuracy <= 100:
        raise ValueError("Accuracy must be between 0 and 100")

    payload: Dict[str, Any] = {
        "exerciseType": exercise_type,
        "duration": duration,
        "totalReps": total_reps,
        "averageAccuracy": average_accuracy,
    }
    if user_id:
        payload["userId"] = user_id
    return payload


def encode_frame(image_path: Path) -> str:
    """Base64-encode an image file for the frame analysis endpoint."""
    return base64.b64encode(image_path.read_bytes()).decode("ascii")
