"""Starting and reading the ffmpeg diagnostic subprocess for a stream."""
import asyncio
from typing import AsyncIterator, List, Optional

from streamwatch.core.logging import logger
from streamwatch.monitor.models import StreamTarget


class DiagnosticLaunchError(Exception):
    """Raised when the diagnostic subprocess cannot be started."""


def build_diagnostic_command(
    target: StreamTarget,
    ffmpeg_path: str = "ffmpeg",
    level_stats: bool = True,
    stats_reset_frames: int = 50
) -> List[str]:
    """
    Build the ffmpeg invocation that analyses a stream without writing output.

    silencedetect reports silence_start/silence_end; astats with metadata
    enabled plus ametadata=print adds periodic lavfi.astats.* level lines.

    Args:
        target: Stream and silence thresholds
        ffmpeg_path: ffmpeg executable
        level_stats: Append the astats level chain
        stats_reset_frames: astats reset interval in audio frames

    Returns:
        argv list
    """
    filters = [
        f"silencedetect=noise={target.silence_noise_level}:d={target.silence_min_seconds:f}"
    ]
    if level_stats:
        filters.append(
            f"astats=metadata=1:reset={stats_reset_frames}:measure_perchannel=none"
        )
        filters.append("ametadata=mode=print")

    return [
        ffmpeg_path,
        "-hide_banner",
        "-nostats",
        "-nostdin",
        "-i", target.url,
        "-af", ",".join(filters),
        "-f", "null",
        "-",
    ]


class DiagnosticSession:
    """A running diagnostic subprocess and its stderr line stream."""

    def __init__(self, process: asyncio.subprocess.Process, stream_id: str):
        self._process = process
        self.stream_id = stream_id
        self.read_error: Optional[str] = None

    @classmethod
    async def start(
        cls,
        argv: List[str],
        stream_id: str,
        read_limit: int = 64 * 1024
    ) -> "DiagnosticSession":
        """Spawn argv with stderr piped; raises DiagnosticLaunchError on failure."""
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
                limit=read_limit
            )
        except (OSError, ValueError) as e:
            raise DiagnosticLaunchError(f"cannot start {argv[0]} for {stream_id}: {e}") from e

        if process.stderr is None:
            raise DiagnosticLaunchError(f"no stderr pipe for {stream_id}")
        return cls(process, stream_id)

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode

    async def lines(self) -> AsyncIterator[str]:
        """
        Yield decoded stderr lines until EOF or a read error.

        A line longer than the read limit ends the iteration; the reason is
        kept in read_error.
        """
        stream = self._process.stderr
        while True:
            try:
                raw = await stream.readline()
            except (ValueError, asyncio.LimitOverrunError) as e:
                self.read_error = str(e)
                logger.warning(f"Diagnostic read error for {self.stream_id}: {e}")
                return
            if not raw:
                return
            yield raw.decode("utf-8", errors="replace").rstrip("\r\n")

    async def wait(self) -> int:
        """Wait for the subprocess to exit and return its exit code."""
        return await self._process.wait()

    async def terminate(self, grace: float = 5.0) -> None:
        """Stop the subprocess: SIGTERM, then SIGKILL after the grace period."""
        if self._process.returncode is not None:
            return
        try:
            self._process.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(self._process.wait(), timeout=grace)
        except asyncio.TimeoutError:
            logger.warning(f"Diagnostic process for {self.stream_id} ignored SIGTERM, killing")
            try:
                self._process.kill()
            except ProcessLookupError:
                return
            await self._process.wait()


class DiagnosticLauncher:
    """Starts one diagnostic session per call for a given stream."""

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        level_stats: bool = True,
        stats_reset_frames: int = 50,
        read_limit: int = 64 * 1024
    ):
        self.ffmpeg_path = ffmpeg_path
        self.level_stats = level_stats
        self.stats_reset_frames = stats_reset_frames
        self.read_limit = read_limit

    def command(self, target: StreamTarget) -> List[str]:
        return build_diagnostic_command(
            target,
            ffmpeg_path=self.ffmpeg_path,
            level_stats=self.level_stats,
            stats_reset_frames=self.stats_reset_frames
        )

    async def launch(self, target: StreamTarget) -> DiagnosticSession:
        """
        Start the diagnostic subprocess for a stream.

        Raises:
            DiagnosticLaunchError: If the process or its pipe cannot be set up
        """
        argv = self.command(target)
        session = await DiagnosticSession.start(argv, target.url, read_limit=self.read_limit)
        logger.debug(f"Diagnostic process for {target.url} started: PID={session.pid}")
        return session
