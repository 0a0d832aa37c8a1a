from __future__ import annotations

import math

import numpy as np
import pytest

from pourflow.ocr import OcrThrottle, crop_region, enhance_display_region, parse_display_text


def test_enhance_display_region_binarizes_after_contrast_stretch() -> None:
    region = np.array([[100, 140, 150, 200]], dtype=np.uint8)

    enhanced = enhance_display_region(region)

    # 140 -> 152 stays dark, 150 -> 172 crosses the threshold.
    assert enhanced.dtype == np.uint8
    assert enhanced.tolist() == [[0, 0, 255, 255]]


@pytest.mark.parametrize(
    ("text", "confidence_pct", "value", "confidence"),
    [
        ("12.3g", 87.0, 12.3, 0.87),
        ("250", 100.0, 250.0, 1.0),
        (" .5", 40.0, 0.5, 0.4),
        ("7.", 120.0, 7.0, 1.0),
    ],
)
def test_parse_display_text_reads_leading_number(
    text: str, confidence_pct: float, value: float, confidence: float
) -> None:
    result = parse_display_text(text, confidence_pct)

    assert result.value == pytest.approx(value)
    assert result.confidence == pytest.approx(confidence)
    assert result.has_value


@pytest.mark.parametrize("text", ["", "g12", "..", "--"])
def test_parse_display_text_without_number_is_absent(text: str) -> None:
    result = parse_display_text(text, 90.0)

    assert math.isnan(result.value)
    assert not result.has_value


def test_throttle_allows_one_attempt_per_interval() -> None:
    throttle = OcrThrottle(min_interval_s=0.5)

    assert throttle.ready(0.0)
    throttle.mark(0.0)
    assert not throttle.ready(0.25)
    assert throttle.ready(0.5)
    throttle.mark(0.5)
    throttle.reset()
    assert throttle.ready(0.6)


def test_crop_region_bounds() -> None:
    frame = np.arange(100, dtype=np.uint8).reshape(10, 10)

    assert crop_region(frame, None) is frame
    assert crop_region(frame, (2, 3, 4, 2)).tolist() == [[32, 33, 34, 35], [42, 43, 44, 45]]
    with pytest.raises(ValueError, match="outside frame bounds"):
        crop_region(frame, (8, 8, 4, 4))
