"""Periodic liveness probe: can ffmpeg read a few seconds of each stream?"""
import asyncio
from typing import List, Optional, Sequence

from streamwatch.core.logging import logger
from streamwatch.monitor.models import STREAM_UP
from streamwatch.services.metrics import MetricsSink


def build_probe_command(url: str, ffmpeg_path: str = "ffmpeg", probe_seconds: int = 2) -> List[str]:
    """ffmpeg invocation that decodes probe_seconds of the stream and discards it."""
    return [ffmpeg_path, "-nostdin", "-v", "error", "-t", str(probe_seconds), "-i", url, "-f", "null", "-"]


class LivenessProber:
    """Runs a short ffmpeg check per stream on a fixed interval and sets audio_stream_up."""

    def __init__(
        self,
        urls: Sequence[str],
        sink: MetricsSink,
        *,
        interval: float = 30.0,
        ffmpeg_path: str = "ffmpeg",
        probe_seconds: int = 2,
        timeout: float = 15.0
    ):
        self.urls = list(urls)
        self.sink = sink
        self.interval = interval
        self.ffmpeg_path = ffmpeg_path
        self.probe_seconds = probe_seconds
        self.timeout = timeout
        self._stop_event = asyncio.Event()

    def stop(self) -> None:
        self._stop_event.set()

    async def check_stream(self, url: str) -> bool:
        """
        Probe one stream and record the result.

        Args:
            url: Stream URL

        Returns:
            True if ffmpeg exited 0 within the timeout
        """
        argv = build_probe_command(url, self.ffmpeg_path, self.probe_seconds)
        error: Optional[str] = None
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL
            )
        except OSError as e:
            process = None
            error = str(e)

        if process is not None:
            try:
                exit_code = await asyncio.wait_for(process.wait(), timeout=self.timeout)
                if exit_code != 0:
                    error = f"exit code {exit_code}"
            except asyncio.TimeoutError:
                error = f"no answer within {self.timeout}s"
            finally:
                # Also reached on cancellation; the probe must not outlive its task
                if process.returncode is None:
                    try:
                        process.kill()
                    except ProcessLookupError:
                        pass
                    await process.wait()

        if error is None:
            logger.info(f"Stream OK: {url}")
            self.sink.set_gauge(STREAM_UP, url, 1)
            return True

        logger.warning(f"Stream KO: {url} ({error})")
        self.sink.set_gauge(STREAM_UP, url, 0)
        return False

    async def probe_all(self) -> List[bool]:
        """Probe every stream concurrently."""
        return await asyncio.gather(*(self.check_stream(url) for url in self.urls))

    async def run(self) -> None:
        """Probe all streams every interval until stopped or cancelled."""
        while not self._stop_event.is_set():
            await self.probe_all()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
