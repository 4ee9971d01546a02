"""Connectivity tracking with an edge-triggered recovery signal."""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Mapping, Union

from fitlink.core.models import NetworkStatus

logger = logging.getLogger(__name__)

RecoveryListener = Callable[[NetworkStatus], None]


class ConnectivityMonitor:
    """Holds the latest network status reported by the platform.

    The status starts optimistic (connected) until the first event arrives.
    Listeners are notified once per disconnected -> connected transition.
    """

    def __init__(self, initial: NetworkStatus = NetworkStatus(connected=True)) -> None:
        self._status = initial
        self._listeners: List[RecoveryListener] = []

    @property
    def status(self) -> NetworkStatus:
        return self._status

    def is_connected(self) -> bool:
        return self._status.connected

    def add_recovery_listener(self, listener: RecoveryListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_recovery_listener(self, listener: RecoveryListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def on_change(self, event: Union[NetworkStatus, Mapping[str, Any]]) -> None:
        """Replace the current status with a platform connectivity event."""
        status = event if isinstance(event, NetworkStatus) else NetworkStatus.from_event(event)
        was_connected = self._status.connected
        self._status = status
        logger.debug("Network status changed: %s", status)

        if was_connected or not status.connected:
            return

        logger.info("Network restored (%s)", status.transport_type or "unknown transport")
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception:
                logger.exception("Recovery listener %r failed", listener)
