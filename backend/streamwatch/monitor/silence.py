"""Per-stream silence state machine and observation-to-metric mapping."""
from typing import List, Tuple

from streamwatch.monitor.models import (
    CLIPPED_SAMPLES,
    DYNAMIC_RANGE,
    PEAK_LEVEL,
    RMS_LEVEL,
    SILENCE_ACTIVE,
    SILENCE_DURATION,
    ClippedSamples,
    DynamicRange,
    MetricUpdate,
    Observation,
    PeakLevel,
    RmsLevel,
    SilenceEnd,
    SilenceStart,
    SilenceState,
)


def is_silence_event(observation: Observation) -> bool:
    """Check whether an observation belongs to the silence state machine."""
    return isinstance(observation, (SilenceStart, SilenceEnd))


def apply_silence(
    state: SilenceState,
    observation: Observation
) -> Tuple[SilenceState, List[MetricUpdate]]:
    """
    Apply one observation to a stream's silence state.

    silencedetect keeps repeating silence_start while the silence lasts, so
    only the first start in a silent interval produces an update. An end
    always clears the active flag, even when its start was never seen.

    Args:
        state: Current silence state
        observation: Classified observation

    Returns:
        Tuple of (new state, metric updates to publish)
    """
    if isinstance(observation, SilenceStart):
        if state is SilenceState.SILENT:
            return state, []
        return SilenceState.SILENT, [MetricUpdate(SILENCE_ACTIVE, 1.0)]

    if isinstance(observation, SilenceEnd):
        updates = []
        if observation.duration_seconds is not None:
            updates.append(MetricUpdate(SILENCE_DURATION, observation.duration_seconds))
        updates.append(MetricUpdate(SILENCE_ACTIVE, 0.0))
        return SilenceState.AUDIBLE, updates

    return state, []


def observation_updates(observation: Observation) -> List[MetricUpdate]:
    """Map a level/clipping observation straight to metric updates."""
    if isinstance(observation, RmsLevel):
        return [MetricUpdate(RMS_LEVEL, observation.db)]
    if isinstance(observation, PeakLevel):
        return [MetricUpdate(PEAK_LEVEL, observation.db)]
    if isinstance(observation, DynamicRange):
        return [MetricUpdate(DYNAMIC_RANGE, observation.db)]
    if isinstance(observation, ClippedSamples) and observation.count > 0:
        return [MetricUpdate(CLIPPED_SAMPLES, float(observation.count), counter=True)]
    return []


class SilenceTracker:
    """Holds the silence state of a single stream."""

    def __init__(self, stream_id: str):
        self.stream_id = stream_id
        self.state = SilenceState.AUDIBLE

    def apply(self, observation: Observation) -> List[MetricUpdate]:
        """Advance the state and return the updates the transition produced."""
        self.state, updates = apply_silence(self.state, observation)
        return updates

    def reset(self) -> None:
        """Forget any silence in progress (new diagnostic session)."""
        self.state = SilenceState.AUDIBLE

    @property
    def silent(self) -> bool:
        return self.state is SilenceState.SILENT
