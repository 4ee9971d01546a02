"""Synthetic pose data and exercise configs for degraded operation."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from fitlink.core.clock import SYSTEM_CLOCK, Clock
from fitlink.core.constants import (
    DEFAULT_FEEDBACK,
    DEFAULT_PARAMETERS,
    FORM_CHECKS,
    FULL_BODY,
    GENERIC_FORM_CHECKS,
    GENERIC_THRESHOLDS,
    LANDMARK_LAYOUT,
    STAGE_WARNINGS,
    SYNTHETIC_CYCLE_MS,
    TARGET_KEYPOINTS,
    THRESHOLDS,
    ExerciseType,
    exercise_label,
)
from fitlink.core.models import ExerciseConfig, PoseData, PoseKeypoint, PoseStage

# (upper progress bound, stage, base form score, sine frequency, amplitude)
PHASES: List[Tuple[float, PoseStage, float, float, float]] = [
    (0.2, PoseStage.REST, 85.0, 10.0, 3.0),
    (0.5, PoseStage.DOWN, 88.0, 8.0, 4.0),
    (0.7, PoseStage.HOLD, 92.0, 12.0, 2.0),
    (1.0, PoseStage.UP, 90.0, 6.0, 3.0),
]


def _phase(progress: float) -> Tuple[PoseStage, float]:
    _, stage, base, frequency, amplitude = next(
        phase for phase in PHASES if progress < phase[0] or phase is PHASES[-1]
    )
    return stage, base + math.sin(progress * frequency) * amplitude


class FallbackSynthesizer:
    """Produces plausible results when the backend cannot supply real ones.

    Pose data is a pure function of wall-clock time: a repeating
    rest -> down -> hold -> up cycle with an 8 second period.
    """

    def __init__(self, clock: Clock = SYSTEM_CLOCK) -> None:
        self.clock = clock

    def synthetic_pose_data(self, exercise_type: str, now: Optional[float] = None) -> PoseData:
        at = self.clock.now() if now is None else now
        now_ms = int(round(at * 1000))
        progress = (now_ms % SYNTHETIC_CYCLE_MS) / SYNTHETIC_CYCLE_MS
        stage, form_score = _phase(progress)

        exercise = ExerciseType.parse(exercise_type)
        names = TARGET_KEYPOINTS[exercise] if exercise is not None else FULL_BODY
        shift = math.sin(progress * math.pi * 2) * 0.1
        keypoints = tuple(
            PoseKeypoint(
                x=LANDMARK_LAYOUT[name][0],
                y=round(LANDMARK_LAYOUT[name][1] + shift, 6),
                name=name,
                z=LANDMARK_LAYOUT[name][2],
                visibility=LANDMARK_LAYOUT[name][3],
            )
            for name in names
        )

        label = exercise_label(exercise_type)
        warnings = tuple(text.format(label=label) for text in STAGE_WARNINGS[stage.value])
        timestamp = datetime.fromtimestamp(now_ms / 1000, tz=timezone.utc).isoformat()

        return PoseData(
            keypoints=keypoints,
            confidence=round(0.88 + math.sin(progress * 4) * 0.05, 6),
            form_score=float(round(form_score)),
            current_rep=now_ms // SYNTHETIC_CYCLE_MS + 1,
            stage=stage,
            warnings=warnings,
            timestamp=timestamp,
            degraded=True,
        )

    def synthetic_exercise_config(self, exercise_type: str) -> ExerciseConfig:
        exercise = ExerciseType.parse(exercise_type)
        if exercise is None:
            return ExerciseConfig(
                exercise_type=str(exercise_type),
                target_keypoints=tuple(FULL_BODY),
                thresholds=dict(GENERIC_THRESHOLDS),
                feedback=dict(DEFAULT_FEEDBACK),
                form_checks=tuple(GENERIC_FORM_CHECKS),
                parameters=dict(DEFAULT_PARAMETERS),
                degraded=True,
            )
        return ExerciseConfig(
            exercise_type=exercise.value,
            target_keypoints=tuple(TARGET_KEYPOINTS[exercise]),
            thresholds=dict(THRESHOLDS[exercise]),
            feedback=dict(DEFAULT_FEEDBACK),
            form_checks=tuple(FORM_CHECKS[exercise]),
            parameters=dict(DEFAULT_PARAMETERS),
            degraded=True,
        )
