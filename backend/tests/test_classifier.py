"""Unit tests for diagnostic line classification."""
import math

import pytest
from streamwatch.monitor.classifier import classify_line
from streamwatch.monitor.models import (
    ClippedSamples,
    DynamicRange,
    PeakLevel,
    RmsLevel,
    SilenceEnd,
    SilenceStart,
)


def test_silence_start():
    """Test silencedetect start line."""
    line = "[silencedetect @ 0x55d5c8a0e2c0] silence_start: 12.5031"
    assert classify_line(line) == [SilenceStart()]


def test_silence_end_with_duration():
    """Test silencedetect end line carries the duration."""
    line = "[silencedetect @ 0x55d5c8a0e2c0] silence_end: 20.0031 | silence_duration: 7.50"
    assert classify_line(line) == [SilenceEnd(7.5)]


def test_silence_end_without_duration():
    """Test that an end without a duration still ends silence."""
    assert classify_line("silence_end: 20.0") == [SilenceEnd(None)]


def test_silence_end_unparsable_duration():
    """Test that a malformed duration is dropped but the end is kept."""
    assert classify_line("silence_end | silence_duration: 1.2.3") == [SilenceEnd(None)]


def test_silence_start_wins_over_end():
    """Test that start and end markers are exclusive on one line."""
    assert classify_line("silence_start silence_end | silence_duration: 2") == [SilenceStart()]


def test_human_readable_levels():
    """Test astats summary lines."""
    assert classify_line("[Parsed_astats_1 @ 0x1] RMS level dB: -18.23") == [RmsLevel(-18.23)]
    assert classify_line("[Parsed_astats_1 @ 0x1] Peak level dB: -0.5") == [PeakLevel(-0.5)]
    assert classify_line("[Parsed_astats_1 @ 0x1] Dynamic range: 84.2") == [DynamicRange(84.2)]


def test_human_readable_case_insensitive():
    """Test that level tokens match regardless of case."""
    assert classify_line("rms LEVEL: -3") == [RmsLevel(-3.0)]


def test_rms_peak_is_not_peak_level():
    """Test that 'RMS peak' is not mistaken for a peak level."""
    assert classify_line("[Parsed_astats_1 @ 0x1] RMS peak dB: -12.0") == []


def test_minus_inf_level_ignored():
    """Test that -inf summary values produce nothing."""
    assert classify_line("[Parsed_astats_1 @ 0x1] RMS level dB: -inf") == []


def test_clipped_samples():
    """Test clip counts are reported only when positive."""
    assert classify_line("Number of clipped samples: 3") == [ClippedSamples(3)]
    assert classify_line("Number of clipped samples: 0") == []


@pytest.mark.parametrize("line,expected", [
    ("lavfi.astats.1.Overall.RMS_level=-18.231", RmsLevel(-18.231)),
    ("[Parsed_ametadata_2 @ 0x7f] lavfi.astats.Overall.Peak_level=-1.02", PeakLevel(-1.02)),
    ("lavfi.astats.Overall.Dynamic_range=71.5", DynamicRange(71.5)),
    ("lavfi.astats.Overall.Number_of_clipped_samples=12", ClippedSamples(12)),
])
def test_metadata_lines(line, expected):
    """Test key=value metadata lines."""
    assert classify_line(line) == [expected]


def test_metadata_zero_clips_ignored():
    """Test that zero clip counts from metadata are not reported."""
    assert classify_line("lavfi.astats.Overall.Number_of_clipped_samples=0") == []


def test_metadata_unknown_key_ignored():
    """Test that other astats keys are ignored."""
    assert classify_line("lavfi.astats.Overall.Crest_factor=5.1") == []


def test_metadata_bad_value_ignored():
    """Test that an unparsable metadata value is dropped."""
    assert classify_line("lavfi.astats.Overall.RMS_level=loud") == []


def test_metadata_minus_inf():
    """Test that -inf parses as a float in metadata lines."""
    result = classify_line("lavfi.astats.Overall.RMS_level=-inf")
    assert len(result) == 1
    assert math.isinf(result[0].db) and result[0].db < 0


def test_multiple_observations_per_line():
    """Test that rules are not exclusive."""
    line = "RMS level dB: -20.0 lavfi.astats.Overall.Peak_level=-3.0"
    assert classify_line(line) == [RmsLevel(-20.0), PeakLevel(-3.0)]


@pytest.mark.parametrize("line", [
    "",
    "Input #0, mp3, from 'http://radio.test/live.mp3':",
    "size=N/A time=00:00:10.00 bitrate=N/A speed=1x",
    "[mp3float @ 0x1] Header missing",
])
def test_unrelated_lines(line):
    """Test that unrelated ffmpeg output yields nothing."""
    assert classify_line(line) == []
