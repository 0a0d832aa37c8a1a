from __future__ import annotations

import math

import pytest

from pourflow.readings import (
    ManualEntry,
    OcrResult,
    ScheduledManualEntry,
    fuse_scale_reading,
    parse_manual_value,
)


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("12.5", 12.5),
        ("  40 ", 40.0),
        ("-3", -3.0),
        ("", None),
        ("   ", None),
        ("abc", None),
        ("nan", None),
        ("inf", None),
        (None, None),
    ],
)
def test_parse_manual_value(text: str | None, expected: float | None) -> None:
    assert parse_manual_value(text) == expected


def test_manual_value_beats_confident_ocr() -> None:
    reading = fuse_scale_reading(3.0, "40", OcrResult(value=38.0, confidence=0.99))

    assert reading is not None
    assert reading.source == "manual"
    assert reading.mass_g == 40.0
    assert reading.confidence is None
    assert reading.t_s == 3.0


def test_ocr_used_when_manual_blank() -> None:
    reading = fuse_scale_reading(1.0, "  ", OcrResult(value=38.0, confidence=0.8))

    assert reading is not None
    assert reading.source == "ocr"
    assert reading.mass_g == 38.0
    assert reading.confidence == pytest.approx(0.8)


def test_ocr_confidence_is_clamped() -> None:
    reading = fuse_scale_reading(1.0, None, OcrResult(value=5.0, confidence=1.7))

    assert reading is not None
    assert reading.confidence == 1.0


def test_no_reading_when_both_sources_empty() -> None:
    assert fuse_scale_reading(1.0, None, OcrResult(value=math.nan, confidence=0.9)) is None
    assert fuse_scale_reading(1.0, "", None) is None
    assert fuse_scale_reading(1.0, "n/a", OcrResult(value=math.inf)) is None


def test_manual_entry_is_consumed_once() -> None:
    entry = ManualEntry()

    assert entry.submit(" 12.0 ") == 12.0
    assert entry.pending == " 12.0 "
    assert entry.take(0.0) == " 12.0 "
    assert entry.take(0.1) is None


def test_manual_entry_reports_unparseable_submission() -> None:
    entry = ManualEntry()

    assert entry.submit("twelve") is None
    entry.clear()
    assert entry.pending is None


def test_scheduled_entry_emits_latest_due_reading() -> None:
    entry = ScheduledManualEntry([(2.0, 20.0), (0.0, 0.0), (1.0, 10.0)])

    assert len(entry) == 3
    assert entry.take(0.0) == "0.0"
    assert entry.take(0.5) is None
    # Both 1.0 and 2.0 are due; only the newer one is kept.
    assert entry.take(2.5) == "20.0"
    assert entry.take(10.0) is None

    entry.clear()
    assert entry.take(0.0) == "0.0"
