"""Transport implementations for sending pose frames to the collector."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Set

import requests

from .landmarks import PoseFrame

LOGGER = logging.getLogger(__name__)

INGEST_PATH = "/api/pose-landmarks"


class PoseTransport:
    """Interface for sending pose frames to a consumer.

    ``dispatch`` is the fire-and-forget entry point used by the capture loop:
    it schedules ``send`` without waiting for it and caps the number of sends
    still in flight at ``max_in_flight``. Frames beyond the cap are dropped.
    """

    max_in_flight: int = 4

    def __init__(self) -> None:
        self.frames_sent = 0
        self.frames_dropped = 0
        self._pending: Set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._pending)

    async def connect(self) -> None:
        """Connect the transport to its endpoint."""

    async def send(self, frame: PoseFrame) -> bool:
        """Send a pose frame, returning ``True`` on success."""
        raise NotImplementedError

    def dispatch(self, frame: PoseFrame) -> Optional[asyncio.Task]:
        if len(self._pending) >= self.max_in_flight:
            self.frames_dropped += 1
            LOGGER.debug("%d sends still in flight; dropping frame", len(self._pending))
            return None
        task = asyncio.get_running_loop().create_task(self._send_and_count(frame))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _send_and_count(self, frame: PoseFrame) -> bool:
        try:
            ok = await self.send(frame)
        except Exception as exc:
            LOGGER.error("Error sending landmarks to server: %s", exc)
            return False
        if ok:
            self.frames_sent += 1
        return ok

    async def drain(self) -> None:
        """Wait for every dispatched send to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        """Close the transport."""
        await self.drain()


@dataclass
class HttpPoseTransport(PoseTransport):
    """POST each frame as JSON to the collector's ingestion endpoint."""

    endpoint: str = "http://127.0.0.1:3000"
    timeout: float = 5.0
    max_in_flight: int = 4
    session: Optional[requests.Session] = None
    _owns_session: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        PoseTransport.__init__(self)
        if self.max_in_flight < 1:
            raise ValueError("max_in_flight must be at least 1")

    @property
    def url(self) -> str:
        base = self.endpoint if "://" in self.endpoint else f"http://{self.endpoint}"
        return base.rstrip("/") + INGEST_PATH

    async def connect(self) -> None:
        if self.session is None:
            self.session = requests.Session()
            self._owns_session = True
        LOGGER.info("Sending pose frames to %s", self.url)

    async def send(self, frame: PoseFrame) -> bool:
        if self.session is None:
            raise RuntimeError("Transport is not connected")
        payload = frame.to_dict()
        try:
            response = await asyncio.to_thread(self.session.post, self.url, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            LOGGER.error("Error sending landmarks to server: %s", exc)
            return False
        if not response.ok:
            LOGGER.error("Failed to send landmarks: %s %s", response.status_code, response.reason)
            return False
        LOGGER.debug("Sent pose frame (%d landmarks) via HTTP", len(frame))
        return True

    async def close(self) -> None:
        await super().close()
        if self.session is not None and self._owns_session:
            self.session.close()
            LOGGER.info("Closed HTTP session")
            self.session = None
            self._owns_session = False


__all__ = ["PoseTransport", "HttpPoseTransport", "INGEST_PATH"]
