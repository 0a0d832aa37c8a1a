from __future__ import annotations

import json
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

SUPPORTED_MARKER_BACKENDS = ("aruco", "none")

_CONFIG_ALIASES = {
    "FPS": "fps",
    "PROXY_SMOOTH_WINDOW": "proxy_smooth_window",
    "diffThreshold": "diff_threshold",
    "offsetFactor": "offset_factor",
}


@dataclass(frozen=True)
class SamplingConfig:
    """Process-wide tunables for the pour sampling loop."""

    fps: float = 15.0
    proxy_smooth_window: int = 5
    diff_threshold: int = 25
    offset_factor: float = -2.0
    roi_width_factor: float = 0.8
    roi_height_factor: float = 1.6
    fallback_width_fraction: float = 0.12
    fallback_height_fraction: float = 0.2
    fallback_top_fraction: float = 0.4
    ocr_min_interval_s: float = 0.5
    ocr_region: tuple[int, int, int, int] | None = None
    marker_backend: str = "aruco"
    aruco_dictionary: str = "DICT_4X4_50"
    calibration_floor: float = 1e-12


def validate_sampling_config(config: SamplingConfig) -> SamplingConfig:
    if config.fps <= 0:
        raise ValueError("fps must be positive")
    if config.proxy_smooth_window < 1:
        raise ValueError("proxy_smooth_window must be at least 1")
    if not 0 <= config.diff_threshold <= 255:
        raise ValueError("diff_threshold must be in [0, 255]")
    if config.roi_width_factor <= 0 or config.roi_height_factor <= 0:
        raise ValueError("ROI size factors must be positive")

    for name in (
        "fallback_width_fraction",
        "fallback_height_fraction",
    ):
        value = getattr(config, name)
        if value <= 0 or value > 1:
            raise ValueError(f"{name} must be in (0, 1]")
    if config.fallback_top_fraction < 0 or config.fallback_top_fraction >= 1:
        raise ValueError("fallback_top_fraction must be in [0, 1)")

    if config.ocr_min_interval_s < 0:
        raise ValueError("ocr_min_interval_s cannot be negative")
    if config.ocr_region is not None:
        if len(config.ocr_region) != 4:
            raise ValueError("ocr_region must be in format x,y,w,h")
        _, _, width, height = config.ocr_region
        if width <= 0 or height <= 0:
            raise ValueError("ocr_region width and height must be positive")
    if config.marker_backend not in SUPPORTED_MARKER_BACKENDS:
        raise ValueError(
            "marker_backend must be one of: " + ", ".join(SUPPORTED_MARKER_BACKENDS)
        )
    if config.calibration_floor <= 0:
        raise ValueError("calibration_floor must be positive")
    return config


def config_from_mapping(
    payload: dict[str, Any], base: SamplingConfig | None = None
) -> SamplingConfig:
    known = {item.name for item in fields(SamplingConfig)}
    overrides: dict[str, Any] = {}
    for key, value in payload.items():
        name = _CONFIG_ALIASES.get(key, key)
        if name not in known:
            raise ValueError(f"unknown configuration key: {key}")
        if name == "ocr_region" and value is not None:
            value = tuple(int(item) for item in value)
        overrides[name] = value

    return validate_sampling_config(replace(base or SamplingConfig(), **overrides))


def load_sampling_config(path: str | Path) -> SamplingConfig:
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(config_path)

    payload = json.loads(config_path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError("configuration file must contain a JSON object")
    return config_from_mapping(payload)


def config_to_dict(config: SamplingConfig) -> dict[str, Any]:
    return {item.name: getattr(config, item.name) for item in fields(SamplingConfig)}
