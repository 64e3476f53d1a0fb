"""Owns the supervisor tasks of all streams and the liveness prober task."""
import asyncio
from typing import List, Optional, Sequence

from streamwatch.core.logging import logger
from streamwatch.monitor.launcher import DiagnosticLauncher
from streamwatch.monitor.models import StreamTarget
from streamwatch.services.metrics import MetricsSink
from streamwatch.services.prober import LivenessProber
from streamwatch.services.stream_registry import StreamRegistry
from streamwatch.services.supervisor import StreamSupervisor


class MonitorService:
    """Starts one supervisor task per stream plus the prober, and stops them together."""

    def __init__(
        self,
        targets: Sequence[StreamTarget],
        launcher: DiagnosticLauncher,
        sink: MetricsSink,
        *,
        registry: Optional[StreamRegistry] = None,
        prober: Optional[LivenessProber] = None,
        restart_delay: float = 5.0,
        launch_retry_delay: float = 10.0,
        terminate_grace: float = 5.0
    ):
        self.registry = registry if registry is not None else StreamRegistry()
        self.prober = prober
        self.supervisors = [
            StreamSupervisor(
                target,
                launcher,
                sink,
                restart_delay=restart_delay,
                launch_retry_delay=launch_retry_delay,
                terminate_grace=terminate_grace,
                registry=self.registry
            )
            for target in targets
        ]
        self._tasks: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def start(self) -> None:
        """Register every stream and launch the tasks."""
        if self._tasks:
            logger.warning("Monitor service already started")
            return
        for supervisor in self.supervisors:
            await self.registry.register_stream(supervisor.url)
            self._tasks.append(
                asyncio.create_task(supervisor.run(), name=f"supervisor:{supervisor.url}")
            )
        if self.prober is not None:
            self._tasks.append(asyncio.create_task(self.prober.run(), name="liveness-prober"))
        logger.info(f"Monitoring {len(self.supervisors)} streams")

    async def stop(self) -> None:
        """Stop every task and wait until their subprocesses are gone."""
        for supervisor in self.supervisors:
            supervisor.stop()
        if self.prober is not None:
            self.prober.stop()
        for task in self._tasks:
            task.cancel()
        results = await asyncio.gather(*self._tasks, return_exceptions=True)
        for task, result in zip(self._tasks, results):
            if isinstance(result, Exception):
                logger.error(f"Task {task.get_name()} failed: {result}")
        self._tasks = []
        logger.info("Monitor service stopped")
