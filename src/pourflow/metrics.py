from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from .integration import trapz_integral


@dataclass(frozen=True)
class PourSummary:
    """Summary metrics derived from a pour-rate curve in g/s."""

    start_time_s: float
    end_time_s: float
    duration_s: float
    pour_time_s: float
    poured_mass_g: float
    peak_rate_g_s: float
    mean_rate_g_s: float
    time_to_peak_s: float
    interruptions_count: int


def _validate_series(timestamps_s: Sequence[float], rate_g_s: Sequence[float]) -> None:
    if len(timestamps_s) != len(rate_g_s):
        raise ValueError("timestamps_s and rate_g_s must have equal length")
    if len(timestamps_s) < 2:
        raise ValueError("at least two points are required")

    previous_t = timestamps_s[0]
    for index, current_t in enumerate(timestamps_s[1:], start=1):
        if current_t < previous_t:
            raise ValueError(f"timestamps must be non-decreasing (index {index})")
        previous_t = current_t


def _compute_pour_time(
    timestamps_s: Sequence[float], rate_g_s: Sequence[float], threshold_g_s: float
) -> float:
    total = 0.0
    for i in range(1, len(timestamps_s)):
        mid_rate = 0.5 * (rate_g_s[i] + rate_g_s[i - 1])
        if mid_rate >= threshold_g_s:
            total += timestamps_s[i] - timestamps_s[i - 1]
    return total


def _count_interruptions(
    timestamps_s: Sequence[float],
    rate_g_s: Sequence[float],
    threshold_g_s: float,
    min_pause_s: float,
) -> int:
    started = False
    in_pause = False
    pause_start = 0.0
    pauses = 0

    for i in range(1, len(timestamps_s)):
        mid_rate = 0.5 * (rate_g_s[i] + rate_g_s[i - 1])
        if mid_rate >= threshold_g_s:
            if in_pause and timestamps_s[i - 1] - pause_start >= min_pause_s:
                pauses += 1
            started = True
            in_pause = False
        elif started and not in_pause:
            in_pause = True
            pause_start = timestamps_s[i - 1]

    # A pause still open at the end of the series is the end of the pour.
    return pauses


def calculate_pour_summary(
    timestamps_s: Sequence[float],
    rate_g_s: Sequence[float],
    threshold_g_s: float = 0.5,
    min_pause_s: float = 0.5,
) -> PourSummary:
    """Calculate pour metrics from a calibrated rate curve."""

    _validate_series(timestamps_s, rate_g_s)

    start_time = timestamps_s[0]
    end_time = timestamps_s[-1]
    poured_mass = trapz_integral(timestamps_s, rate_g_s)
    pour_time = _compute_pour_time(timestamps_s, rate_g_s, threshold_g_s)

    peak_rate = max(rate_g_s)
    peak_index = list(rate_g_s).index(peak_rate)

    return PourSummary(
        start_time_s=start_time,
        end_time_s=end_time,
        duration_s=end_time - start_time,
        pour_time_s=pour_time,
        poured_mass_g=poured_mass,
        peak_rate_g_s=peak_rate,
        mean_rate_g_s=poured_mass / pour_time if pour_time > 0 else 0.0,
        time_to_peak_s=timestamps_s[peak_index] - start_time,
        interruptions_count=_count_interruptions(
            timestamps_s, rate_g_s, threshold_g_s=threshold_g_s, min_pause_s=min_pause_s
        ),
    )
