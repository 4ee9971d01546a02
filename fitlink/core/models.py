"""Data models shared by the resilience layer and the CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, Mapping, Optional, Tuple, TypeVar

T = TypeVar("T")


class RequestKind(str, Enum):
    VIDEO = "video"
    FRAME = "frame"
    CONFIG = "config"
    SUMMARY = "summary"


class PoseStage(str, Enum):
    UP = "up"
    DOWN = "down"
    HOLD = "hold"
    REST = "rest"


@dataclass(frozen=True)
class NetworkStatus:
    """Reachability snapshot, replaced on every platform event."""

    connected: bool
    transport_type: Optional[str] = None
    internet_reachable: Optional[bool] = None

    @classmethod
    def from_event(cls, event: Mapping[str, Any]) -> "NetworkStatus":
        """Build a status from a platform connectivity event mapping."""
        connected = event.get("isConnected", event.get("connected"))
        transport = event.get("type", event.get("transportType"))
        reachable = event.get("isInternetReachable", event.get("internetReachable"))
        return cls(
            connected=bool(connected) if connected is not None else False,
            transport_type=str(transport) if transport is not None else None,
            internet_reachable=bool(reachable) if reachable is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isConnected": self.connected,
            "type": self.transport_type,
            "isInternetReachable": self.internet_reachable,
        }


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff bounds; delays are in seconds."""

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    backoff_factor: float = 2.0

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "RetryPolicy":
        retry_cfg = config.get("retry", {})
        return cls(
            max_retries=int(retry_cfg.get("max_retries", 3)),
            base_delay=float(retry_cfg.get("base_delay", 1.0)),
            max_delay=float(retry_cfg.get("max_delay", 10.0)),
            backoff_factor=float(retry_cfg.get("backoff_factor", 2.0)),
        )


@dataclass
class QueuedRequest:
    """A mutating call deferred while offline."""

    id: str
    kind: RequestKind
    payload: Dict[str, Any]
    enqueued_at: float
    attempt_count: int = 0

    def record_failure(self) -> None:
        self.attempt_count += 1


@dataclass
class CacheEntry(Generic[T]):
    value: T
    expires_at: float

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at


@dataclass(frozen=True)
class PoseKeypoint:
    """One tracked body landmark in normalized image coordinates."""

    x: float
    y: float
    name: str
    z: Optional[float] = None
    visibility: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"x": self.x, "y": self.y, "name": self.name}
        if self.z is not None:
            payload["z"] = self.z
        if self.visibility is not None:
            payload["visibility"] = self.visibility
        return payload


@dataclass(frozen=True)
class PoseData:
    """Analysis of a single frame, real or synthetic."""

    keypoints: Tuple[PoseKeypoint, ...]
    confidence: float
    form_score: float
    current_rep: int
    stage: PoseStage
    warnings: Tuple[str, ...]
    timestamp: Optional[str] = None
    degraded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "keypoints": [kp.to_dict() for kp in self.keypoints],
            "confidence": self.confidence,
            "formScore": self.form_score,
            "currentRep": self.current_rep,
            "stage": self.stage.value,
            "warnings": list(self.warnings),
            "timestamp": self.timestamp,
            "degraded": self.degraded,
        }


@dataclass(frozen=True)
class FormFeedback:
    timestamp: float
    type: str
    message: str
    body_part: str
    severity: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "type": self.type,
            "message": self.message,
            "bodyPart": self.body_part,
            "severity": self.severity,
        }


@dataclass(frozen=True)
class AnalysisResult:
    """Result of one full video analysis. Never cached."""

    session_id: str
    exercise_type: str
    total_reps: int
    accuracy: float
    form_feedback: Tuple[FormFeedback, ...]
    keypoints: Tuple[PoseKeypoint, ...]
    duration: float
    calories: float
    recommendations: Tuple[str, ...]
    timestamp: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "exerciseType": self.exercise_type,
            "totalReps": self.total_reps,
            "accuracy": self.accuracy,
            "formFeedback": [item.to_dict() for item in self.form_feedback],
            "keypoints": [kp.to_dict() for kp in self.keypoints],
            "duration": self.duration,
            "calories": self.calories,
            "recommendations": list(self.recommendations),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class ExerciseConfig:
    """Per-exercise analysis parameters, cached by exercise type."""

    exercise_type: str
    target_keypoints: Tuple[str, ...]
    thresholds: Dict[str, Any]
    feedback: Dict[str, Any]
    form_checks: Tuple[str, ...] = ()
    parameters: Dict[str, Any] = field(default_factory=dict)
    details: Dict[str, Any] = field(default_factory=dict)
    degraded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = dict(self.details)
        payload.update(
            {
                "exerciseType": self.exercise_type,
                "targetKeypoints": list(self.target_keypoints),
                "thresholds": dict(self.thresholds),
                "feedback": dict(self.feedback),
                "formChecks": list(self.form_checks),
                "parameters": dict(self.parameters),
                "degraded": self.degraded,
            }
        )
        return payload


@dataclass(frozen=True)
class UploadProgress:
    loaded: int
    total: int
    percentage: int

    @classmethod
    def of(cls, loaded: int, total: int) -> "UploadProgress":
        percentage = int(round(loaded / total * 100)) if total > 0 else 0
        return cls(loaded=loaded, total=total, percentage=min(percentage, 100))


@dataclass(frozen=True)
class SessionSummary:
    session_id: Optional[str]
    summary: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"sessionId": self.session_id, "summary": self.summary}


@dataclass(frozen=True)
class QueueEvent:
    """Side-channel notification about a replayed queue entry."""

    request: QueuedRequest
    outcome: str
    result: Any = None
    error: Optional[BaseException] = None
