"""Static constants and per-exercise tables for fitlink."""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Tuple

DEFAULT_PORT = 8000

CANDIDATE_HOSTS = [
    "10.0.2.2",
    "127.0.0.1",
    "localhost",
    "192.168.137.1",
    "192.168.1.100",
    "192.168.0.100",
    "192.168.1.1",
    "192.168.0.1",
    "10.0.0.100",
    "172.16.0.100",
]

HEALTH_PATH = "/"
ANALYZE_VIDEO_PATH = "/api/analyze-video"
ANALYZE_FRAME_PATH = "/api/analyze-frame"
EXERCISE_CONFIG_PATH = "/api/exercise-config/{exercise_type}"
SESSION_SUMMARY_PATH = "/api/session-summary"

CONFIG_CACHE_TTL_SECONDS = 30 * 60
REDRAIN_DELAY_SECONDS = 5.0
SYNTHETIC_CYCLE_MS = 8000

NON_RETRYABLE_STATUSES = frozenset({400, 401, 404, 413})

FRAME_FALLBACK_STATUSES = (400, 401, 403, 422, 500, 502, 503, 504)
CONFIG_FALLBACK_STATUSES = (401, 403, 404, 500, 502, 503, 504)


class ExerciseType(str, Enum):
    """Exercises the backend and the fallback tables know about."""

    SQUAT = "squat"
    PUSH_UP = "push_up"
    HAMMER_CURL = "hammer_curl"
    CHAIR_YOGA = "chair_yoga"
    BREATHING_EXERCISE = "breathing_exercise"

    @classmethod
    def parse(cls, value: object) -> Optional["ExerciseType"]:
        """Return the member for a wire name, or None when unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


LOWER_BODY = ["left_hip", "right_hip", "left_knee", "right_knee", "left_ankle", "right_ankle"]
UPPER_BODY = [
    "left_shoulder",
    "right_shoulder",
    "left_elbow",
    "right_elbow",
    "left_wrist",
    "right_wrist",
]
FULL_BODY = ["nose"] + UPPER_BODY + LOWER_BODY

TARGET_KEYPOINTS: Dict[ExerciseType, List[str]] = {
    ExerciseType.SQUAT: LOWER_BODY,
    ExerciseType.PUSH_UP: UPPER_BODY,
    ExerciseType.HAMMER_CURL: UPPER_BODY,
    ExerciseType.CHAIR_YOGA: ["left_shoulder", "right_shoulder", "left_hip", "right_hip"],
    ExerciseType.BREATHING_EXERCISE: ["nose", "left_shoulder", "right_shoulder"],
}

THRESHOLDS: Dict[ExerciseType, Dict[str, float]] = {
    ExerciseType.SQUAT: {"minAngle": 90, "maxAngle": 170, "holdTime": 1.0},
    ExerciseType.PUSH_UP: {"minAngle": 45, "maxAngle": 160, "holdTime": 0.5},
    ExerciseType.HAMMER_CURL: {"minAngle": 30, "maxAngle": 150, "holdTime": 0.3},
    ExerciseType.CHAIR_YOGA: {"minAngle": 0, "maxAngle": 180, "holdTime": 2.0},
    ExerciseType.BREATHING_EXERCISE: {"minAngle": 0, "maxAngle": 180, "holdTime": 4.0},
}

FORM_CHECKS: Dict[ExerciseType, List[str]] = {
    ExerciseType.SQUAT: ["knee_alignment", "back_straight", "depth_check"],
    ExerciseType.PUSH_UP: ["elbow_alignment", "body_straight", "full_range"],
    ExerciseType.HAMMER_CURL: ["elbow_pinned", "neutral_grip", "controlled_tempo"],
    ExerciseType.CHAIR_YOGA: ["upright_posture", "shoulders_relaxed"],
    ExerciseType.BREATHING_EXERCISE: ["steady_rhythm", "shoulders_relaxed"],
}

GENERIC_THRESHOLDS: Dict[str, float] = {"minAngle": 60, "maxAngle": 170, "holdTime": 1.0}
GENERIC_FORM_CHECKS = ["posture", "full_range"]

DEFAULT_FEEDBACK = {
    "realTimeEnabled": True,
    "audioEnabled": True,
    "visualEnabled": True,
}

DEFAULT_PARAMETERS = {
    "sensitivity": 0.8,
    "smoothing": 0.3,
    "confidence_threshold": 0.5,
}

# Resting landmark positions (x, y, z, visibility) in normalized image space.
LANDMARK_LAYOUT: Dict[str, Tuple[float, float, float, float]] = {
    "nose": (0.50, 0.15, 0.00, 0.97),
    "left_shoulder": (0.42, 0.28, 0.05, 0.96),
    "right_shoulder": (0.58, 0.28, 0.05, 0.96),
    "left_elbow": (0.38, 0.40, 0.10, 0.93),
    "right_elbow": (0.62, 0.40, 0.10, 0.93),
    "left_wrist": (0.36, 0.52, 0.15, 0.90),
    "right_wrist": (0.64, 0.52, 0.15, 0.90),
    "left_hip": (0.45, 0.40, 0.10, 0.95),
    "right_hip": (0.55, 0.40, 0.10, 0.95),
    "left_knee": (0.43, 0.65, 0.20, 0.92),
    "right_knee": (0.57, 0.65, 0.20, 0.92),
    "left_ankle": (0.40, 0.85, 0.30, 0.90),
    "right_ankle": (0.60, 0.85, 0.30, 0.90),
}

STAGE_WARNINGS = {
    "rest": ["Get ready to start your {label}"],
    "down": ["Descending - control the movement", "Keep your back straight"],
    "hold": ["Hold position - great depth!"],
    "up": ["Rising up - push through your heels"],
}


def exercise_label(exercise_type: str) -> str:
    """Human label for an exercise wire name."""
    return str(exercise_type).replace("_", " ").strip() or "exercise"
