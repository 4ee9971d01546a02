from __future__ import annotations

import asyncio
import json
import random
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest
from typer.testing import CliRunner

from fitlink.core.client import BackendClient
from fitlink.core.clock import Clock
from fitlink.core.config import _default_config
from fitlink.core.models import UploadProgress


class FakeClock(Clock):
    """Manual clock; ``sleep`` advances time instead of waiting."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.current = start
        self.sleeps: List[float] = []

    def now(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += seconds
        await asyncio.sleep(0)


class FakeAPI:
    """Stands in for ExerciseBackendAPI; responses are queued per method."""

    def __init__(self, **responses: List[Any]) -> None:
        self.responses: Dict[str, List[Any]] = {key: list(value) for key, value in responses.items()}
        self.calls: List[tuple] = []
        self.token: Optional[str] = None

    def _next(self, method: str, *args: Any) -> Any:
        self.calls.append((method,) + args)
        queue = self.responses.get(method) or []
        if not queue:
            raise AssertionError(f"unexpected call to {method}")
        outcome = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def health(self) -> Any:
        return self._next("health")

    def analyze_frame(self, frame_data: str, exercise_type: str) -> Any:
        return self._next("analyze_frame", frame_data, exercise_type)

    def get_exercise_config(self, exercise_type: str) -> Any:
        return self._next("get_exercise_config", exercise_type)

    def submit_session_summary(self, payload: Dict[str, Any]) -> Any:
        return self._next("submit_session_summary", payload)

    def analyze_video(self, video_path: Path, exercise_type: str, sent_at: float, progress=None) -> Any:  # type: ignore[no-untyped-def]
        if progress is not None:
            for loaded in (0, 50, 100):
                progress(UploadProgress.of(loaded, 100))
        return self._next("analyze_video", video_path, exercise_type)

    def count(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def make_client(clock: FakeClock) -> Callable[..., BackendClient]:
    """Build a client wired to a FakeAPI at a fixed URL."""

    def _make(
        api: Optional[FakeAPI] = None,
        config: Optional[Dict[str, Any]] = None,
        url: Optional[str] = "http://backend.test:8000",
    ) -> BackendClient:
        async def discover() -> Optional[str]:
            return url

        fake = api or FakeAPI()
        return BackendClient(
            config=config or _default_config(),
            discover=discover,
            token="",
            clock=clock,
            rng=random.Random(7),
            api_factory=lambda **_: fake,
        )

    return _make


@pytest.fixture()
def pose_payload() -> Dict[str, Any]:
    return {
        "keypoints": [
            {"x": 0.5, "y": 0.3, "name": "left_shoulder", "visibility": 0.9},
            {"x": 0.55, "y": 0.6, "name": "left_knee"},
        ],
        "confidence": 0.91,
        "formScore": 87,
        "currentRep": 4,
        "stage": "down",
        "warnings": ["Keep your back straight"],
        "timestamp": "2026-10-18T10:00:00Z",
    }


@pytest.fixture()
def analysis_payload() -> Dict[str, Any]:
    return {
        "sessionId": "sess-42",
        "exerciseType": "squat",
        "totalReps": 12,
        "accuracy": 84.5,
        "formFeedback": [
            {"timestamp": 3.2, "type": "warning", "message": "Knees caving in", "bodyPart": "knees", "severity": "medium"}
        ],
        "keypoints": [{"x": 0.5, "y": 0.4, "name": "left_hip"}],
        "duration": 61.0,
        "calories": 18.2,
        "recommendations": ["Widen your stance"],
    }


@pytest.fixture()
def config_payload() -> Dict[str, Any]:
    return {
        "exercise_type": "squat",
        "target_keypoints": ["left_hip", "left_knee"],
        "thresholds": {"minAngle": 85, "maxAngle": 175, "holdTime": 1.0},
        "form_tips": ["Keep chest up"],
        "default_reps": 10,
    }


@pytest.fixture()
def write_temp_json(tmp_path: Path):
    def _write(name: str, payload: Any) -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(payload, indent=2) + "\n")
        return path

    return _write


@pytest.fixture()
def write_temp_toml(tmp_path: Path):
    def _write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.write_text(content.strip() + "\n")
        return path

    return _write


@pytest.fixture()
def fake_api():
    return FakeAPI
