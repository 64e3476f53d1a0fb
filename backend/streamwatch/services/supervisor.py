"""Per-stream supervision of the ffmpeg diagnostic subprocess."""
import asyncio
from typing import Awaitable, Callable, Optional

from streamwatch.core.logging import logger
from streamwatch.monitor.classifier import classify_line
from streamwatch.monitor.launcher import DiagnosticLaunchError, DiagnosticLauncher, DiagnosticSession
from streamwatch.monitor.models import SILENCE_ACTIVE, SILENCE_DURATION, MetricUpdate, SilenceState, StreamTarget
from streamwatch.monitor.silence import SilenceTracker, is_silence_event, observation_updates
from streamwatch.services.metrics import MetricsSink, publish
from streamwatch.services.stream_registry import StreamRegistry


class StreamSupervisor:
    """
    Keeps one diagnostic subprocess running for a stream, forever.

    Every stderr line is classified; silence events go through the stream's
    SilenceTracker and everything else is written straight to the sink. When
    the process exits the supervisor waits restart_delay and starts a new one;
    when it cannot be started at all it waits launch_retry_delay. There is no
    backoff and no retry limit. The loop only ends through stop() or task
    cancellation, and the running subprocess is terminated on the way out.
    """

    def __init__(
        self,
        target: StreamTarget,
        launcher: DiagnosticLauncher,
        sink: MetricsSink,
        *,
        restart_delay: float = 5.0,
        launch_retry_delay: float = 10.0,
        terminate_grace: float = 5.0,
        registry: Optional[StreamRegistry] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None
    ):
        """
        Initialize the supervisor for one stream.

        Args:
            target: Stream to supervise
            launcher: Starts diagnostic sessions
            sink: Metrics sink receiving every update for this stream
            restart_delay: Seconds to wait after the process exits
            launch_retry_delay: Seconds to wait after a failed launch
            terminate_grace: Seconds between SIGTERM and SIGKILL on shutdown
            registry: Optional status registry for the API
            sleep: Delay coroutine; defaults to a wait that stop() interrupts
        """
        self.target = target
        self.launcher = launcher
        self.sink = sink
        self.restart_delay = restart_delay
        self.launch_retry_delay = launch_retry_delay
        self.terminate_grace = terminate_grace
        self.registry = registry
        self.tracker = SilenceTracker(target.url)
        self.launch_attempts = 0
        self._sleep = sleep or self._pause
        self._stop_event = asyncio.Event()
        self._session: Optional[DiagnosticSession] = None

    @property
    def url(self) -> str:
        return self.target.url

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Ask the loop to finish at its next wait."""
        self._stop_event.set()

    async def _pause(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    async def run(self) -> None:
        """Supervise the stream until stopped or cancelled."""
        logger.info(
            f"Silence monitor for {self.url} "
            f"(noise={self.target.silence_noise_level}, d={self.target.silence_min_seconds}s)"
        )
        try:
            while not self.stopped:
                try:
                    await self._run_session()
                except Exception as e:
                    logger.error(f"Silence monitor error for {self.url}: {e}", exc_info=True)
                    await self._close_session()
                    await self._sleep(self.restart_delay)
        finally:
            await self._close_session()
            logger.info(f"Silence monitor for {self.url} stopped")

    async def _close_session(self) -> None:
        """Terminate and forget the live session, if any."""
        if self._session is not None:
            session, self._session = self._session, None
            await session.terminate(self.terminate_grace)

    async def _run_session(self) -> None:
        self.launch_attempts += 1
        try:
            session = await self.launcher.launch(self.target)
        except DiagnosticLaunchError as e:
            logger.error(f"Silence monitor start error for {self.url}: {e}")
            if self.registry is not None:
                await self.registry.launch_failed(self.url, str(e))
            await self._sleep(self.launch_retry_delay)
            return

        self._session = session
        self.tracker.reset()
        publish(self.sink, self.url, MetricUpdate(SILENCE_ACTIVE, 0.0))
        publish(self.sink, self.url, MetricUpdate(SILENCE_DURATION, 0.0))
        if self.registry is not None:
            await self.registry.session_started(self.url)

        async for line in session.lines():
            self.handle_line(line)

        if session.read_error is not None:
            # Nothing drains stderr any more, so the process would block on write
            await session.terminate(self.terminate_grace)
        exit_code = await session.wait()
        self._session = None

        if exit_code == 0:
            logger.info(f"Silence monitor ended cleanly for {self.url} (will restart)")
        else:
            logger.warning(f"Silence monitor ended for {self.url} with exit code {exit_code} (will restart)")
        if self.registry is not None:
            await self.registry.session_ended(self.url, exit_code, session.read_error)

        await self._sleep(self.restart_delay)

    def handle_line(self, line: str) -> None:
        """Classify one diagnostic line and publish what it produced."""
        for observation in classify_line(line):
            if is_silence_event(observation):
                previous = self.tracker.state
                updates = self.tracker.apply(observation)
                if previous is not self.tracker.state:
                    if self.tracker.silent:
                        logger.info(f"Silence start detected on {self.url}")
                    else:
                        logger.info(f"Silence end on {self.url} duration={observation.duration_seconds}s")
            else:
                updates = observation_updates(observation)

            for update in updates:
                publish(self.sink, self.url, update)

        if self.registry is not None:
            self.registry.line_seen(self.url, self.tracker.state)

    @property
    def silence_state(self) -> SilenceState:
        return self.tracker.state
