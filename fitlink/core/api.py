"""Exercise-analysis backend HTTP contract, one attempt per call."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote

import requests
from requests_toolbelt import MultipartEncoder, MultipartEncoderMonitor

from fitlink.core.constants import (
    ANALYZE_FRAME_PATH,
    ANALYZE_VIDEO_PATH,
    EXERCISE_CONFIG_PATH,
    HEALTH_PATH,
    SESSION_SUMMARY_PATH,
)
from fitlink.core.errors import HttpError, InvalidResponseShape, RequestTimeout, TransportError
from fitlink.core.models import UploadProgress

ProgressSink = Callable[[UploadProgress], None]


class ExerciseBackendAPI:
    """Thin wrapper around the backend REST API.

    Methods block and raise the fitlink error taxonomy; retrying and thread
    offloading are the caller's concern.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout_seconds: float = 30,
        upload_timeout_seconds: float = 60,
        health_timeout_seconds: float = 5,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout_seconds = timeout_seconds
        self.upload_timeout_seconds = upload_timeout_seconds
        self.health_timeout_seconds = health_timeout_seconds

    def _headers(self, json_body: bool = True) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if json_body:
            headers["Content-Type"] = "application/json"
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    @staticmethod
    def _decode(response: requests.Response, label: str) -> Any:
        if not 200 <= response.status_code < 300:
            raise HttpError(response.status_code, response.text or "", label)
        if not response.text:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise InvalidResponseShape("<body>", "is not valid JSON", label) from exc

    def _request(
        self,
        method: str,
        path: str,
        label: str,
        json_data: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        limit = timeout or self.timeout_seconds
        try:
            response = requests.request(
                method=method,
                url=f"{self.base_url}{path}",
                headers=self._headers(),
                json=json_data,
                timeout=limit,
            )
        except requests.Timeout as exc:
            raise RequestTimeout(f"{label} timed out after {limit}s") from exc
        except requests.RequestException as exc:
            raise TransportError(f"{label} failed: {exc}") from exc
        return self._decode(response, label)

    def health(self) -> Any:
        return self._request("GET", HEALTH_PATH, "Health check", timeout=self.health_timeout_seconds)

    def analyze_frame(self, frame_data: str, exercise_type: str) -> Any:
        return self._request(
            "POST",
            ANALYZE_FRAME_PATH,
            "Frame analysis",
            json_data={"frame_data": frame_data, "exercise_type": exercise_type},
        )

    def get_exercise_config(self, exercise_type: str) -> Any:
        path = EXERCISE_CONFIG_PATH.format(exercise_type=quote(exercise_type, safe=""))
        return self._request("GET", path, "Exercise config")

    def submit_session_summary(self, payload: Dict[str, Any]) -> Any:
        return self._request("POST", SESSION_SUMMARY_PATH, "Session summary", json_data=payload)

    def analyze_video(
        self,
        video_path: Path,
        exercise_type: str,
        sent_at: float,
        progress: Optional[ProgressSink] = None,
    ) -> Any:
        """Stream a multipart upload of ``video_path``, reporting bytes sent."""
        label = "Video upload"
        timestamp = datetime.fromtimestamp(sent_at, tz=timezone.utc).isoformat()

        def on_read(monitor: MultipartEncoderMonitor) -> None:
            if progress is not None:
                progress(UploadProgress.of(monitor.bytes_read, monitor.len))

        with video_path.open("rb") as handle:
            encoder = MultipartEncoder(
                fields={
                    "video": (f"exercise_{int(sent_at * 1000)}.mp4", handle, "video/mp4"),
                    "exerciseType": exercise_type,
                    "timestamp": timestamp,
                }
            )
            monitor = MultipartEncoderMonitor(encoder, on_read)
            headers = self._headers(json_body=False)
            headers["Content-Type"] = monitor.content_type
            try:
                response = requests.post(
                    f"{self.base_url}{ANALYZE_VIDEO_PATH}",
                    data=monitor,
                    headers=headers,
                    timeout=self.upload_timeout_seconds,
                )
            except requests.Timeout as exc:
                raise RequestTimeout(f"{label} timed out after {self.upload_timeout_seconds}s") from exc
            except requests.RequestException as exc:
                raise TransportError(f"{label} failed: {exc}") from exc
        return self._decode(response, label)
