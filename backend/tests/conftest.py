"""Shared fakes for supervisor, prober and API tests."""
from typing import List, Optional, Tuple

import pytest

from streamwatch.monitor.launcher import DiagnosticLaunchError
from streamwatch.monitor.models import StreamTarget


class RecordingSink:
    """MetricsSink that keeps every write in order."""

    def __init__(self):
        self.calls: List[Tuple[str, str, str, float]] = []

    def set_gauge(self, name: str, label: str, value: float) -> None:
        self.calls.append(("gauge", name, label, value))

    def add_counter(self, name: str, label: str, delta: float) -> None:
        self.calls.append(("counter", name, label, delta))

    def writes(self, name: str, label: Optional[str] = None) -> List[Tuple[str, float]]:
        return [
            (kind, value) for kind, metric, lbl, value in self.calls
            if metric == name and (label is None or lbl == label)
        ]


class FakeSession:
    """Diagnostic session replaying fixed stderr lines."""

    def __init__(self, lines: List[str], exit_code: int = 0, read_error: Optional[str] = None):
        self._lines = list(lines)
        self.exit_code = exit_code
        self.read_error = read_error
        self.terminated = False
        self.waited = False

    async def lines(self):
        for line in self._lines:
            yield line

    async def wait(self) -> int:
        self.waited = True
        return self.exit_code

    async def terminate(self, grace: float = 5.0) -> None:
        self.terminated = True


class ScriptedLauncher:
    """Launcher returning a scripted sequence of sessions or launch errors."""

    def __init__(self, script):
        self.script = list(script)
        self.launched: List[StreamTarget] = []

    async def launch(self, target: StreamTarget):
        self.launched.append(target)
        step = self.script.pop(0) if self.script else FakeSession([])
        if isinstance(step, Exception):
            raise step
        return step


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def target() -> StreamTarget:
    return StreamTarget(url="http://radio.test/live.mp3")


def launch_error(message: str = "no such file: ffmpeg") -> DiagnosticLaunchError:
    return DiagnosticLaunchError(message)
