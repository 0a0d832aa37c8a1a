from __future__ import annotations

import asyncio

import numpy as np
import pytest

from pourflow.config import SamplingConfig
from pourflow.integration import trapz_integral
from pourflow.roi import fallback_roi
from pourflow.synthetic import (
    SyntheticPourConfig,
    generate_pour_profile,
    generate_synthetic_pour,
    generate_timestamps,
    series_to_frame_source,
)


def test_generate_pour_profile_matches_target_mass() -> None:
    timestamps_s = generate_timestamps(duration_s=12.0, sample_rate_hz=10.0)
    flow_g_s = generate_pour_profile(
        timestamps_s=timestamps_s,
        profile="bell",
        target_mass_g=280.0,
    )

    assert abs(trapz_integral(timestamps_s, flow_g_s) - 280.0) < 1e-6


def test_intermittent_profile_has_gaps() -> None:
    timestamps_s = generate_timestamps(duration_s=10.0, sample_rate_hz=20.0)
    flow_g_s = generate_pour_profile(timestamps_s, "intermittent", target_mass_g=100.0)

    midpoint_gap = flow_g_s[int(0.32 * (len(flow_g_s) - 1))]
    assert midpoint_gap == 0.0
    assert max(flow_g_s) > 0.0


def test_unknown_profile_is_rejected() -> None:
    timestamps_s = generate_timestamps(duration_s=1.0, sample_rate_hz=10.0)

    with pytest.raises(ValueError, match="unsupported profile"):
        generate_pour_profile(timestamps_s, "spiral", target_mass_g=10.0)


def test_generate_synthetic_pour_has_consistent_lengths() -> None:
    series = generate_synthetic_pour(
        SyntheticPourConfig(
            profile="plateau",
            duration_s=6.0,
            sample_rate_hz=10.0,
            target_mass_g=120.0,
            reading_interval_s=1.5,
            seed=7,
        )
    )

    expected_length = len(series.timestamps_s)

    assert expected_length == 61
    assert len(series.true_flow_g_s) == expected_length
    assert len(series.true_mass_g) == expected_length
    assert len(series.frames) == expected_length
    assert series.frames[0].shape == (120, 160)
    assert series.frames[0].dtype == np.uint8
    assert [t for t, _ in series.readings] == pytest.approx([0.0, 1.5, 3.0, 4.5, 6.0])
    assert abs(series.true_mass_g[-1] - 120.0) < 1e-6


def test_generate_synthetic_pour_is_seeded() -> None:
    config = SyntheticPourConfig(duration_s=2.0, sample_rate_hz=5.0, seed=3)

    first = generate_synthetic_pour(config)
    second = generate_synthetic_pour(config)

    assert all(np.array_equal(a, b) for a, b in zip(first.frames, second.frames, strict=True))


def test_series_to_frame_source_replays_frames() -> None:
    series = generate_synthetic_pour(SyntheticPourConfig(duration_s=1.0, sample_rate_hz=4.0))
    source = series_to_frame_source(series)

    async def _read_all() -> list[float]:
        await source.open()
        timestamps: list[float] = []
        while (frame := await source.read()) is not None:
            timestamps.append(frame.t_s)
        await source.close()
        return timestamps

    assert asyncio.run(_read_all()) == series.timestamps_s


def test_flicker_follows_configured_fallback_roi() -> None:
    sampling = SamplingConfig(
        fallback_width_fraction=0.3,
        fallback_height_fraction=0.5,
        fallback_top_fraction=0.1,
        marker_backend="none",
    )
    config = SyntheticPourConfig(duration_s=2.0, sample_rate_hz=5.0, seed=5)

    series = generate_synthetic_pour(config, sampling)

    roi = fallback_roi(config.frame_width, config.frame_height, sampling)
    inside = np.zeros((config.frame_height, config.frame_width), dtype=bool)
    inside[roi.y : roi.y + roi.height, roi.x : roi.x + roi.width] = True
    bright = np.zeros_like(inside)
    for frame in series.frames:
        bright |= frame == 220
    assert bright.any()
    assert not (bright & ~inside).any()
