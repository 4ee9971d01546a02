"""Resilient client for the exercise-analysis backend."""

from __future__ import annotations

import asyncio
import copy
import logging
import random
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Set, Union

import requests

from fitlink.core.api import ExerciseBackendAPI
from fitlink.core.cache import ResultCache
from fitlink.core.clock import SYSTEM_CLOCK, Clock
from fitlink.core.config import DEFAULT_CONFIG, resolve_token
from fitlink.core.connectivity import ConnectivityMonitor
from fitlink.core.discovery import Discovery, discovery_from_config
from fitlink.core.errors import (
    BackendError,
    EmptyResponse,
    HttpError,
    InvalidResponseShape,
    NetworkUnavailable,
    NotInitializedError,
    QueueDeferred,
    RemoteRejected,
    RequestTimeout,
    TransportError,
)
from fitlink.core.fallback import FallbackSynthesizer
from fitlink.core.models import (
    AnalysisResult,
    ExerciseConfig,
    NetworkStatus,
    PoseData,
    QueuedRequest,
    RequestKind,
    RetryPolicy,
    SessionSummary,
    UploadProgress,
)
from fitlink.core.queue import OfflineQueue
from fitlink.core.retry import RetryExecutor
from fitlink.core.validation import ResponseShape, validate

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[UploadProgress], None]

# Failures that mean the backend could not give a usable answer.
UNUSABLE_RESPONSE = (RequestTimeout, TransportError, RemoteRejected, EmptyResponse, InvalidResponseShape)


def _local_path(video_path: Union[str, Path]) -> Path:
    raw = str(video_path)
    if raw.startswith("file://"):
        raw = raw[len("file://"):]
    return Path(raw)


class BackendClient:
    """Composes retry, connectivity, cache, validation, fallback and queue.

    Built once by the application's composition root; ``start``/``close`` (or
    ``async with``) bracket its lifetime. All state is touched from the event
    loop only; blocking HTTP calls run in worker threads.
    """

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        discover: Optional[Discovery] = None,
        token: Optional[str] = None,
        connectivity: Optional[ConnectivityMonitor] = None,
        clock: Clock = SYSTEM_CLOCK,
        rng: Optional[random.Random] = None,
        api_factory: Callable[..., ExerciseBackendAPI] = ExerciseBackendAPI,
    ) -> None:
        self.config = config if config is not None else copy.deepcopy(DEFAULT_CONFIG)
        self.clock = clock
        self.connectivity = connectivity or ConnectivityMonitor()
        policy = RetryPolicy.from_config(self.config)
        self.retry = RetryExecutor(self.connectivity, policy, clock=clock, rng=rng)
        self.cache: ResultCache[ExerciseConfig] = ResultCache(clock)
        self.fallback = FallbackSynthesizer(clock)
        self.queue = OfflineQueue(
            self._replay,
            max_retries=policy.max_retries,
            redrain_delay=float(self.config.get("queue", {}).get("redrain_delay_seconds", 5.0)),
            clock=clock,
            is_online=self.connectivity.is_connected,
        )

        timeouts = self.config.get("timeouts", {})
        self.request_timeout = float(timeouts.get("request_seconds", 30))
        self.upload_timeout = float(timeouts.get("upload_seconds", 60))
        self.health_timeout = float(timeouts.get("health_seconds", 5))
        self.config_ttl = float(self.config.get("cache", {}).get("config_ttl_seconds", 1800))

        fallback_cfg = self.config.get("fallback", {})
        self.frame_fallback_statuses = frozenset(int(s) for s in fallback_cfg.get("frame_statuses", []))
        self.config_fallback_statuses = frozenset(int(s) for s in fallback_cfg.get("config_statuses", []))

        self._discover = discover or discovery_from_config(self.config)
        self._api_factory = api_factory
        self._api: Optional[ExerciseBackendAPI] = None
        self._token = token if token is not None else resolve_token(self.config)
        self._drain_tasks: Set[asyncio.Task] = set()
        self.base_url: Optional[str] = None

        self.connectivity.add_recovery_listener(self._on_recovered)

    # Lifecycle

    async def start(self) -> bool:
        return await self.initialize()

    async def close(self) -> None:
        self.queue.close()
        for task in list(self._drain_tasks):
            task.cancel()
        if self._drain_tasks:
            await asyncio.gather(*self._drain_tasks, return_exceptions=True)
        self._drain_tasks.clear()

    async def __aenter__(self) -> "BackendClient":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def initialize(self) -> bool:
        """Resolve a base URL; False means the client stays in offline mode."""
        if self.base_url is not None:
            return True

        try:
            url = await self._discover()
        except (BackendError, requests.RequestException, OSError) as exc:
            logger.error("Error initializing backend client: %s", exc)
            return False

        if not url:
            logger.info("No backend server found - running in offline mode")
            return False

        self.base_url = url.rstrip("/")
        self._api = self._api_factory(
            base_url=self.base_url,
            token=self._token,
            timeout_seconds=self.request_timeout,
            upload_timeout_seconds=self.upload_timeout,
            health_timeout_seconds=self.health_timeout,
        )
        logger.info("Backend client initialized with URL: %s", self.base_url)
        return True

    def set_auth_token(self, token: Optional[str]) -> None:
        self._token = token
        if self._api is not None:
            self._api.token = token
        logger.info("Auth token %s", "set" if token else "cleared")

    def reset(self) -> None:
        """Forget the base URL, token, queued requests and cached configs."""
        self.base_url = None
        self._api = None
        self._token = None
        self.queue.close()
        for task in self._drain_tasks:
            task.cancel()
        self._drain_tasks.clear()
        self.queue.clear()
        self.cache.clear()
        logger.info("Backend client reset")

    # Connectivity

    @property
    def network_status(self) -> NetworkStatus:
        return self.connectivity.status

    def on_network_change(self, event: Union[NetworkStatus, Mapping[str, Any]]) -> None:
        self.connectivity.on_change(event)

    def _on_recovered(self, status: NetworkStatus) -> None:
        if not len(self.queue):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Network restored outside the event loop; %d requests stay queued", len(self.queue))
            return
        logger.info("Network restored, processing %d queued requests", len(self.queue))
        task = loop.create_task(self.queue.drain())
        self._drain_tasks.add(task)
        task.add_done_callback(self._drain_tasks.discard)

    async def join(self) -> None:
        """Wait for recovery drains and any rescheduled drains to finish."""
        while True:
            pending = [task for task in self._drain_tasks if not task.done()]
            if not pending:
                break
            await asyncio.gather(*pending)
        await self.queue.join()

    # Public operations

    async def check_health(self) -> bool:
        if self.base_url is None and not await self.initialize():
            return False
        api = self._require_api()
        try:
            await self.retry.execute(lambda: asyncio.to_thread(api.health), "Health Check", max_retries=1)
        except BackendError as exc:
            logger.warning("Backend health check failed: %s", exc)
            return False
        return True

    async def upload_video(
        self,
        video_path: Union[str, Path],
        exercise_type: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> AnalysisResult:
        if not self.connectivity.is_connected():
            raise self._defer(
                RequestKind.VIDEO, {"videoPath": str(video_path), "exerciseType": exercise_type}
            )
        return await self._perform_upload(_local_path(video_path), exercise_type, on_progress)

    async def analyze_frame(self, frame_data: str, exercise_type: str) -> PoseData:
        if not self.connectivity.is_connected():
            raise NetworkUnavailable("real-time analysis")
        if self._api is None:
            logger.info("Backend not initialized, using fallback pose data")
            return self.fallback.synthetic_pose_data(exercise_type)
        return await self._perform_analyze_frame(frame_data, exercise_type)

    async def get_exercise_config(self, exercise_type: str) -> ExerciseConfig:
        cached = self.cache.get(exercise_type)
        if cached is not None:
            logger.debug("Using cached config for %s", exercise_type)
            return cached
        if not self.connectivity.is_connected():
            raise self._defer(RequestKind.CONFIG, {"exerciseType": exercise_type})
        if self._api is None:
            logger.info("Backend not initialized, using fallback exercise config")
            return self.fallback.synthetic_exercise_config(exercise_type)
        return await self._perform_get_exercise_config(exercise_type)

    async def submit_session_summary(self, session_data: Mapping[str, Any]) -> SessionSummary:
        if not self.connectivity.is_connected():
            raise self._defer(RequestKind.SUMMARY, dict(session_data))
        return await self._perform_submit_summary(dict(session_data))

    # Housekeeping

    def queued_count(self) -> int:
        return len(self.queue)

    def clear_queue(self) -> None:
        self.queue.clear()

    def cache_stats(self) -> Dict[str, Any]:
        return self.cache.stats()

    def clear_cache(self) -> None:
        self.cache.clear()

    def update_retry_policy(self, **changes: Any) -> RetryPolicy:
        self.retry.policy = replace(self.retry.policy, **changes)
        self.queue.max_retries = self.retry.policy.max_retries
        logger.info("Retry policy updated: %s", self.retry.policy)
        return self.retry.policy

    # Dispatch paths shared by public calls and queue replay

    def _require_api(self) -> ExerciseBackendAPI:
        if self._api is None:
            raise NotInitializedError()
        return self._api

    def _defer(self, kind: RequestKind, payload: Dict[str, Any]) -> QueueDeferred:
        return QueueDeferred(self.queue.enqueue(kind, payload), kind.value)

    def _timestamp(self) -> str:
        return datetime.fromtimestamp(self.clock.now(), tz=timezone.utc).isoformat()

    async def _attempt(self, call: Callable[..., Any], shape: ResponseShape, *args: Any) -> Any:
        raw = await asyncio.to_thread(call, *args)
        return validate(raw, shape)

    async def _perform_upload(
        self,
        video_path: Path,
        exercise_type: str,
        on_progress: Optional[ProgressCallback],
    ) -> AnalysisResult:
        api = self._require_api()
        sink: Optional[ProgressCallback] = None
        if on_progress is not None:
            loop = asyncio.get_running_loop()

            def sink(progress: UploadProgress) -> None:
                loop.call_soon_threadsafe(on_progress, progress)

        logger.info("Uploading %s for %s analysis", video_path, exercise_type)
        result = await self.retry.execute(
            lambda: self._attempt(
                api.analyze_video,
                ResponseShape.ANALYSIS_RESULT,
                video_path,
                exercise_type,
                self.clock.now(),
                sink,
            ),
            "Video Upload",
        )
        logger.info("Video analysis completed: session %s", result.session_id)
        return result

    async def _perform_analyze_frame(self, frame_data: str, exercise_type: str) -> PoseData:
        api = self._require_api()
        try:
            return await self.retry.execute(
                lambda: self._attempt(api.analyze_frame, ResponseShape.POSE_DATA, frame_data, exercise_type),
                "Frame Analysis",
                max_retries=1,
            )
        except HttpError as exc:
            if exc.status not in self.frame_fallback_statuses:
                raise
            logger.info("Using fallback pose data after HTTP %d", exc.status)
        except UNUSABLE_RESPONSE as exc:
            logger.info("Using fallback pose data: %s", exc)
        return self.fallback.synthetic_pose_data(exercise_type)

    async def _perform_get_exercise_config(self, exercise_type: str) -> ExerciseConfig:
        api = self._require_api()
        try:
            config = await self.retry.execute(
                lambda: self._attempt(api.get_exercise_config, ResponseShape.EXERCISE_CONFIG, exercise_type),
                "Exercise Config",
            )
        except HttpError as exc:
            if exc.status not in self.config_fallback_statuses:
                raise
            logger.info("Using fallback exercise config after HTTP %d", exc.status)
            config = self.fallback.synthetic_exercise_config(exercise_type)
        except UNUSABLE_RESPONSE as exc:
            logger.info("Using fallback exercise config: %s", exc)
            config = self.fallback.synthetic_exercise_config(exercise_type)

        self.cache.set(exercise_type, config, self.config_ttl)
        return config

    async def _perform_submit_summary(self, session_data: Dict[str, Any]) -> SessionSummary:
        api = self._require_api()
        body = dict(session_data)
        body["timestamp"] = self._timestamp()
        summary = await self.retry.execute(
            lambda: self._attempt(api.submit_session_summary, ResponseShape.SESSION_SUMMARY, body),
            "Session Summary",
        )
        logger.info("Session summary submitted: %s", summary.session_id)
        return summary

    async def _replay(self, request: QueuedRequest) -> Any:
        payload = request.payload
        if request.kind is RequestKind.VIDEO:
            return await self._perform_upload(_local_path(payload["videoPath"]), payload["exerciseType"], None)
        if request.kind is RequestKind.FRAME:
            return await self._perform_analyze_frame(payload["frameData"], payload["exerciseType"])
        if request.kind is RequestKind.CONFIG:
            return await self._perform_get_exercise_config(payload["exerciseType"])
        return await self._perform_submit_summary(payload)
