"""Error taxonomy for backend communication."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fitlink.core.constants import NON_RETRYABLE_STATUSES


class BackendError(RuntimeError):
    """Base class for every failure surfaced by the client."""


class NotInitializedError(BackendError):
    """Raised when an operation needs a base URL that was never resolved."""

    def __init__(self, message: str = "Backend service not initialized") -> None:
        super().__init__(message)


class NetworkUnavailable(BackendError):
    """No connectivity at dispatch time."""

    def __init__(self, label: str = "request") -> None:
        super().__init__(f"No network connection for {label}")
        self.label = label


class RequestTimeout(BackendError):
    """A request exceeded its timeout and the transport was aborted."""


class TransportError(BackendError):
    """Connection-level failure while the device reports connectivity."""


class HttpError(BackendError):
    """Non-2xx response from the backend."""

    def __init__(self, status: int, body: str = "", label: str = "request") -> None:
        detail = f": {body[:200]}" if body else ""
        super().__init__(f"{label} failed with HTTP {status}{detail}")
        self.status = status
        self.body = body
        self.label = label

    @property
    def retryable(self) -> bool:
        return self.status not in NON_RETRYABLE_STATUSES


class InvalidResponseShape(BackendError):
    """Decoded payload does not match the expected shape."""

    def __init__(self, field: str, reason: str, context: Optional[str] = None) -> None:
        where = f" in {context}" if context else ""
        super().__init__(f"Invalid response{where}: field '{field}' {reason}")
        self.field = field
        self.reason = reason
        self.context = context


class RemoteRejected(BackendError):
    """The response envelope reported success=false."""

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None) -> None:
        super().__init__(f"API error: {message}")
        self.message = message
        self.errors = list(errors or [])


class EmptyResponse(BackendError):
    """The envelope reported success but carried no data."""


class QueueDeferred(BackendError):
    """The request was queued for replay once connectivity returns."""

    def __init__(self, request_id: str, kind: str) -> None:
        super().__init__(f"No network connection. Request queued with ID: {request_id}")
        self.request_id = request_id
        self.kind = kind
