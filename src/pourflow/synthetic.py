from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from .config import SamplingConfig
from .frames import ArrayFrameSource
from .integration import trapz_integral
from .roi import fallback_roi


@dataclass(frozen=True)
class SyntheticPourConfig:
    """Configuration for synthetic pour bench generation."""

    profile: str = "bell"
    duration_s: float = 12.0
    sample_rate_hz: float = 15.0
    target_mass_g: float = 250.0
    frame_width: int = 160
    frame_height: int = 120
    max_motion_density: float = 0.5
    reading_interval_s: float = 2.0
    scale_resolution_g: float = 0.1
    seed: int = 42


@dataclass(frozen=True)
class SyntheticPourSeries:
    """Synthetic frames with ground-truth flow, mass and scale readings."""

    timestamps_s: list[float]
    true_flow_g_s: list[float]
    true_mass_g: list[float]
    frames: list[np.ndarray]
    readings: list[tuple[float, float]]


SUPPORTED_PROFILES = ("bell", "plateau", "intermittent", "staccato")


def _cumulative_integral(timestamps_s: Sequence[float], values: Sequence[float]) -> list[float]:
    cumulative = [0.0]
    area = 0.0
    for index in range(1, len(timestamps_s)):
        dt = timestamps_s[index] - timestamps_s[index - 1]
        area += 0.5 * (values[index] + values[index - 1]) * dt
        cumulative.append(area)
    return cumulative


def generate_timestamps(duration_s: float, sample_rate_hz: float) -> list[float]:
    if duration_s <= 0:
        raise ValueError("duration_s must be positive")
    if sample_rate_hz <= 0:
        raise ValueError("sample_rate_hz must be positive")

    samples = int(round(duration_s * sample_rate_hz)) + 1
    return [index / sample_rate_hz for index in range(samples)]


def _profile_envelope(normalized_t: float, profile: str) -> float:
    if normalized_t < 0.0 or normalized_t > 1.0:
        return 0.0

    if profile == "bell":
        return math.sin(math.pi * normalized_t) ** 1.8

    if profile == "plateau":
        ramp = 0.18
        if normalized_t < ramp:
            return normalized_t / ramp
        if normalized_t > 1.0 - ramp:
            return (1.0 - normalized_t) / ramp
        return 1.0

    if profile == "intermittent":
        base = math.sin(math.pi * normalized_t) ** 1.5
        in_gap_1 = 0.28 <= normalized_t <= 0.37
        in_gap_2 = 0.62 <= normalized_t <= 0.72
        return 0.0 if in_gap_1 or in_gap_2 else base

    if profile == "staccato":
        base = math.sin(math.pi * normalized_t) ** 1.3
        ripple = 0.55 + 0.45 * (0.5 * (1.0 + math.sin(2.0 * math.pi * 8.0 * normalized_t)))
        return base * ripple

    raise ValueError(f"unsupported profile: {profile}")


def generate_pour_profile(
    timestamps_s: Sequence[float],
    profile: str,
    target_mass_g: float,
) -> list[float]:
    if profile not in SUPPORTED_PROFILES:
        raise ValueError(f"unsupported profile: {profile}")
    if target_mass_g <= 0:
        raise ValueError("target_mass_g must be positive")
    if len(timestamps_s) < 2:
        raise ValueError("at least two timestamps are required")

    duration = timestamps_s[-1] - timestamps_s[0]
    if duration <= 0:
        raise ValueError("timestamps must be strictly increasing")

    normalized = [(timestamp - timestamps_s[0]) / duration for timestamp in timestamps_s]
    raw_flow = [_profile_envelope(value, profile) for value in normalized]

    raw_mass_g = trapz_integral(timestamps_s, raw_flow)
    if raw_mass_g <= 0:
        raise ValueError("generated zero profile mass")
    scale = target_mass_g / raw_mass_g

    return [value * scale for value in raw_flow]


def _render_frames(
    flow_g_s: Sequence[float],
    config: SyntheticPourConfig,
    sampling: SamplingConfig,
    rng: np.random.Generator,
) -> list[np.ndarray]:
    roi = fallback_roi(config.frame_width, config.frame_height, sampling)
    peak_flow = max(flow_g_s)
    frames: list[np.ndarray] = []

    for flow in flow_g_s:
        frame = np.full((config.frame_height, config.frame_width), 100, dtype=np.int16)
        frame += rng.integers(-5, 6, size=frame.shape, dtype=np.int16)

        density = config.max_motion_density * flow / peak_flow if peak_flow > 0 else 0.0
        active = int(round(density * roi.area))
        if active > 0:
            flat = rng.choice(roi.area, size=active, replace=False)
            rows = roi.y + flat // roi.width
            cols = roi.x + flat % roi.width
            frame[rows, cols] = 220
        frames.append(np.clip(frame, 0, 255).astype(np.uint8))
    return frames


def _scale_readings(
    timestamps_s: Sequence[float], mass_g: Sequence[float], config: SyntheticPourConfig
) -> list[tuple[float, float]]:
    if config.reading_interval_s <= 0:
        return []

    readings: list[tuple[float, float]] = []
    next_reading_s = timestamps_s[0]
    for timestamp, mass in zip(timestamps_s, mass_g, strict=True):
        if timestamp + 1e-9 < next_reading_s:
            continue
        resolution = config.scale_resolution_g
        displayed = round(mass / resolution) * resolution if resolution > 0 else mass
        readings.append((timestamp, displayed))
        next_reading_s += config.reading_interval_s
    return readings


def generate_synthetic_pour(
    config: SyntheticPourConfig, sampling: SamplingConfig | None = None
) -> SyntheticPourSeries:
    """Render a pour whose flicker fills the fallback ROI of ``sampling``."""

    if config.frame_width <= 0 or config.frame_height <= 0:
        raise ValueError("frame size must be positive")
    if not 0 < config.max_motion_density <= 1:
        raise ValueError("max_motion_density must be in (0, 1]")

    timestamps_s = generate_timestamps(config.duration_s, config.sample_rate_hz)
    true_flow_g_s = generate_pour_profile(
        timestamps_s=timestamps_s,
        profile=config.profile,
        target_mass_g=config.target_mass_g,
    )
    true_mass_g = _cumulative_integral(timestamps_s, true_flow_g_s)

    rng = np.random.default_rng(config.seed)
    frames = _render_frames(true_flow_g_s, config, sampling or SamplingConfig(), rng)

    return SyntheticPourSeries(
        timestamps_s=timestamps_s,
        true_flow_g_s=true_flow_g_s,
        true_mass_g=true_mass_g,
        frames=frames,
        readings=_scale_readings(timestamps_s, true_mass_g, config),
    )


def series_to_frame_source(series: SyntheticPourSeries) -> ArrayFrameSource:
    return ArrayFrameSource(series.frames, series.timestamps_s)
