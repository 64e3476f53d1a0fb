"""Runtime status of every monitored stream."""
import asyncio
import time
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional

from streamwatch.core.logging import logger
from streamwatch.monitor.models import SilenceState


@dataclass
class StreamStatus:
    """Operator-facing status of one stream's supervisor."""
    url: str
    running: bool = False
    silence_state: str = SilenceState.AUDIBLE.value
    launches: int = 0
    launch_failures: int = 0
    last_exit_code: Optional[int] = None
    last_error: Optional[str] = None
    last_line_at: Optional[float] = None
    started_at: Optional[float] = None


class StreamRegistry:
    """Tracks supervisor status per stream URL."""

    def __init__(self):
        """Initialize the stream registry."""
        self._streams: Dict[str, StreamStatus] = {}
        self._lock = asyncio.Lock()

    async def register_stream(self, url: str) -> None:
        """
        Register a stream so it shows up before its first session.

        Args:
            url: Stream URL
        """
        async with self._lock:
            if url not in self._streams:
                self._streams[url] = StreamStatus(url=url)
                logger.info(f"Registered stream: {url}")

    async def session_started(self, url: str) -> None:
        async with self._lock:
            status = self._streams.setdefault(url, StreamStatus(url=url))
            status.running = True
            status.launches += 1
            status.started_at = time.time()
            status.silence_state = SilenceState.AUDIBLE.value

    async def session_ended(self, url: str, exit_code: Optional[int], error: Optional[str] = None) -> None:
        async with self._lock:
            status = self._streams.setdefault(url, StreamStatus(url=url))
            status.running = False
            status.last_exit_code = exit_code
            status.last_error = error

    async def launch_failed(self, url: str, error: str) -> None:
        async with self._lock:
            status = self._streams.setdefault(url, StreamStatus(url=url))
            status.running = False
            status.launch_failures += 1
            status.last_error = error

    def line_seen(self, url: str, state: SilenceState) -> None:
        """Record activity for a stream; called for every diagnostic line."""
        status = self._streams.get(url)
        if status is not None:
            status.last_line_at = time.time()
            status.silence_state = state.value

    async def get_status(self, url: str) -> Optional[dict]:
        """
        Get the status of a single stream.

        Args:
            url: Stream URL

        Returns:
            Status dictionary or None if the stream is unknown
        """
        async with self._lock:
            status = self._streams.get(url)
            return asdict(status) if status is not None else None

    async def list_statuses(self) -> List[dict]:
        """
        Get the status of all registered streams.

        Returns:
            List of status dictionaries in registration order
        """
        async with self._lock:
            return [asdict(status) for status in self._streams.values()]
