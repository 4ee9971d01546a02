"""Shape checks for decoded backend payloads.

Every inbound payload passes through :func:`validate` before it reaches the
rest of the application. The envelope ``{success, data, error, errors,
timestamp}`` is unwrapped first, then the payload is checked field by field
and converted into the matching model. The first missing or mistyped field is
reported through :class:`InvalidResponseShape`. Inputs are never mutated.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Mapping, Tuple

from fitlink.core.constants import DEFAULT_FEEDBACK, THRESHOLDS, TARGET_KEYPOINTS, ExerciseType
from fitlink.core.errors import EmptyResponse, InvalidResponseShape, RemoteRejected
from fitlink.core.models import (
    AnalysisResult,
    ExerciseConfig,
    FormFeedback,
    PoseData,
    PoseKeypoint,
    PoseStage,
    SessionSummary,
)


class ResponseShape(str, Enum):
    ANALYSIS_RESULT = "analysis result"
    POSE_DATA = "pose data"
    EXERCISE_CONFIG = "exercise config"
    SESSION_SUMMARY = "session summary"


VALID_STAGES = frozenset(stage.value for stage in PoseStage)

# Backend snake_case keys and their client names.
CONFIG_KEY_ALIASES = {
    "exercise_type": "exerciseType",
    "target_keypoints": "targetKeypoints",
    "form_tips": "formChecks",
    "form_checks": "formChecks",
    "default_reps": "defaultReps",
    "default_sets": "defaultSets",
}

CONFIG_DETAIL_KEYS = ("name", "description", "difficulty", "defaultReps", "defaultSets", "instructions")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_array(value: Any) -> bool:
    return isinstance(value, (list, tuple))


_CHECKS = {
    "string": (lambda value: isinstance(value, str), "must be a string"),
    "number": (_is_number, "must be a number"),
    "array": (_is_array, "must be an array"),
    "object": (lambda value: isinstance(value, Mapping), "must be an object"),
}


def _check_fields(payload: Mapping[str, Any], spec: List[Tuple[str, str]], context: str) -> None:
    for field_name, kind in spec:
        if field_name not in payload:
            raise InvalidResponseShape(field_name, "is missing", context)
        check, reason = _CHECKS[kind]
        if not check(payload[field_name]):
            raise InvalidResponseShape(field_name, reason, context)


def _require_object(payload: Any, context: str) -> Mapping[str, Any]:
    if not isinstance(payload, Mapping):
        raise InvalidResponseShape("<root>", "must be an object", context)
    return payload


def unwrap_envelope(raw: Any, context: str = "response") -> Any:
    """Return the payload, unwrapping ``{success, data, ...}`` when present."""
    if not isinstance(raw, Mapping) or "success" not in raw:
        return raw
    if not raw.get("success"):
        raise RemoteRejected(str(raw.get("error") or "Unknown API error"), raw.get("errors"))
    data = raw.get("data")
    if data is None:
        raise EmptyResponse(f"No data in API response for {context}")
    return data


def _check_keypoints(items: Any, context: str) -> Tuple[PoseKeypoint, ...]:
    keypoints: List[PoseKeypoint] = []
    for index, item in enumerate(items):
        where = f"keypoints[{index}]"
        if not isinstance(item, Mapping):
            raise InvalidResponseShape(where, "must be an object", context)
        for axis in ("x", "y"):
            if not _is_number(item.get(axis)):
                raise InvalidResponseShape(f"{where}.{axis}", "must be a number", context)
        if not isinstance(item.get("name"), str):
            raise InvalidResponseShape(f"{where}.name", "must be a string", context)
        for optional in ("z", "visibility"):
            if item.get(optional) is not None and not _is_number(item[optional]):
                raise InvalidResponseShape(f"{where}.{optional}", "must be a number", context)

        keypoints.append(
            PoseKeypoint(
                x=float(item["x"]),
                y=float(item["y"]),
                name=item["name"],
                z=float(item["z"]) if item.get("z") is not None else None,
                visibility=float(item["visibility"]) if item.get("visibility") is not None else None,
            )
        )
    return tuple(keypoints)


def _check_feedback(items: Any, context: str) -> Tuple[FormFeedback, ...]:
    feedback: List[FormFeedback] = []
    for index, item in enumerate(items):
        where = f"formFeedback[{index}]"
        if not isinstance(item, Mapping):
            raise InvalidResponseShape(where, "must be an object", context)
        timestamp = item.get("timestamp")
        if timestamp is not None and not _is_number(timestamp):
            raise InvalidResponseShape(f"{where}.timestamp", "must be a number", context)
        for text in ("type", "message", "bodyPart", "severity"):
            if item.get(text) is not None and not isinstance(item[text], str):
                raise InvalidResponseShape(f"{where}.{text}", "must be a string", context)

        feedback.append(
            FormFeedback(
                timestamp=float(timestamp or 0.0),
                type=item.get("type") or "warning",
                message=item.get("message") or "",
                body_part=item.get("bodyPart") or "",
                severity=item.get("severity") or "low",
            )
        )
    return tuple(feedback)


def _analysis_result(payload: Mapping[str, Any]) -> AnalysisResult:
    context = ResponseShape.ANALYSIS_RESULT.value
    _check_fields(
        payload,
        [
            ("sessionId", "string"),
            ("exerciseType", "string"),
            ("totalReps", "number"),
            ("accuracy", "number"),
            ("formFeedback", "array"),
            ("keypoints", "array"),
            ("duration", "number"),
            ("calories", "number"),
            ("recommendations", "array"),
        ],
        context,
    )
    return AnalysisResult(
        session_id=payload["sessionId"],
        exercise_type=payload["exerciseType"],
        total_reps=int(payload["totalReps"]),
        accuracy=float(payload["accuracy"]),
        form_feedback=_check_feedback(payload["formFeedback"], context),
        keypoints=_check_keypoints(payload["keypoints"], context),
        duration=float(payload["duration"]),
        calories=float(payload["calories"]),
        recommendations=tuple(str(item) for item in payload["recommendations"]),
        timestamp=payload.get("timestamp"),
    )


def _pose_data(payload: Mapping[str, Any]) -> PoseData:
    context = ResponseShape.POSE_DATA.value
    _check_fields(
        payload,
        [
            ("keypoints", "array"),
            ("confidence", "number"),
            ("formScore", "number"),
            ("currentRep", "number"),
            ("stage", "string"),
            ("warnings", "array"),
        ],
        context,
    )
    keypoints = _check_keypoints(payload["keypoints"], context)
    if payload["stage"] not in VALID_STAGES:
        raise InvalidResponseShape(
            "stage", f"must be one of {sorted(VALID_STAGES)}, got {payload['stage']!r}", context
        )
    return PoseData(
        keypoints=keypoints,
        confidence=float(payload["confidence"]),
        form_score=float(payload["formScore"]),
        current_rep=int(payload["currentRep"]),
        stage=PoseStage(payload["stage"]),
        warnings=tuple(str(item) for item in payload["warnings"]),
        timestamp=payload.get("timestamp"),
    )


def normalize_exercise_config(payload: Any) -> Any:
    """Map backend config field names onto client names, filling known defaults."""
    if not isinstance(payload, Mapping):
        return payload

    normalized: Dict[str, Any] = {}
    for key, value in payload.items():
        normalized.setdefault(CONFIG_KEY_ALIASES.get(key, key), value)

    exercise = ExerciseType.parse(normalized.get("exerciseType"))
    if exercise is not None:
        normalized.setdefault("targetKeypoints", list(TARGET_KEYPOINTS[exercise]))
        normalized.setdefault("thresholds", dict(THRESHOLDS[exercise]))
    normalized.setdefault("feedback", dict(DEFAULT_FEEDBACK))
    return normalized


def _exercise_config(payload: Mapping[str, Any]) -> ExerciseConfig:
    context = ResponseShape.EXERCISE_CONFIG.value
    _check_fields(
        payload,
        [
            ("exerciseType", "string"),
            ("targetKeypoints", "array"),
            ("thresholds", "object"),
            ("feedback", "object"),
        ],
        context,
    )
    parameters = payload.get("parameters")
    form_checks = payload.get("formChecks")
    return ExerciseConfig(
        exercise_type=payload["exerciseType"],
        target_keypoints=tuple(str(item) for item in payload["targetKeypoints"]),
        thresholds=dict(payload["thresholds"]),
        feedback=dict(payload["feedback"]),
        form_checks=tuple(str(item) for item in form_checks) if _is_array(form_checks) else (),
        parameters=dict(parameters) if isinstance(parameters, Mapping) else {},
        details={key: payload[key] for key in CONFIG_DETAIL_KEYS if key in payload},
    )


def _session_summary(payload: Mapping[str, Any]) -> SessionSummary:
    session_id = payload.get("sessionId", payload.get("session_id"))
    if session_id is not None and not isinstance(session_id, (str, int)):
        raise InvalidResponseShape("sessionId", "must be a string", ResponseShape.SESSION_SUMMARY.value)
    return SessionSummary(
        session_id=str(session_id) if session_id is not None else None,
        summary=payload.get("summary", dict(payload)),
    )


def validate(raw: Any, shape: ResponseShape) -> Any:
    """Unwrap, check and convert ``raw`` into the model for ``shape``."""
    context = shape.value
    payload = unwrap_envelope(raw, context)
    if shape is ResponseShape.EXERCISE_CONFIG:
        payload = normalize_exercise_config(payload)
    payload = _require_object(payload, context)

    if shape is ResponseShape.ANALYSIS_RESULT:
        return _analysis_result(payload)
    if shape is ResponseShape.POSE_DATA:
        return _pose_data(payload)
    if shape is ResponseShape.EXERCISE_CONFIG:
        return _exercise_config(payload)
    return _session_summary(payload)
