from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

READING_SOURCE = Literal["manual", "ocr"]


@dataclass(frozen=True)
class ScaleReading:
    """Ground-truth mass reading recorded during a sampling tick."""

    t_s: float
    mass_g: float
    source: READING_SOURCE
    confidence: float | None = None


@dataclass(frozen=True)
class OcrResult:
    """Digit recognition output; a NaN value means no reading."""

    value: float
    confidence: float = 0.0

    @property
    def has_value(self) -> bool:
        return _is_finite_number(self.value)


def _is_finite_number(value: object) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(float(value))
    )


def parse_manual_value(text: str | float | None) -> float | None:
    """Parse operator input; empty, non-numeric and non-finite input is absent."""

    if text is None:
        return None
    if isinstance(text, str):
        text = text.strip()
        if not text:
            return None
    try:
        value = float(text)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def fuse_scale_reading(
    t_s: float, manual_text: str | float | None, ocr: OcrResult | None
) -> ScaleReading | None:
    """Pick at most one truth reading for a tick; manual input always wins."""

    manual_value = parse_manual_value(manual_text)
    if manual_value is not None:
        return ScaleReading(t_s=t_s, mass_g=manual_value, source="manual")

    if ocr is not None and ocr.has_value:
        confidence = min(max(float(ocr.confidence), 0.0), 1.0)
        return ScaleReading(
            t_s=t_s, mass_g=float(ocr.value), source="ocr", confidence=confidence
        )
    return None


class ManualEntry:
    """Latest operator-typed scale value, consumed by the next tick."""

    def __init__(self) -> None:
        self._pending: str | None = None

    @property
    def pending(self) -> str | None:
        return self._pending

    def submit(self, text: str | None) -> float | None:
        self._pending = text
        return parse_manual_value(text)

    def take(self, t_s: float) -> str | None:
        text, self._pending = self._pending, None
        return text

    def clear(self) -> None:
        self._pending = None


class ScheduledManualEntry:
    """Replays (t_s, mass_g) truth readings at the first tick reaching each time."""

    def __init__(self, readings: Sequence[tuple[float, float]]) -> None:
        self._readings = sorted((float(t), float(mass)) for t, mass in readings)
        self._next_index = 0

    def __len__(self) -> int:
        return len(self._readings)

    def take(self, t_s: float) -> str | None:
        due: tuple[float, float] | None = None
        while (
            self._next_index < len(self._readings)
            and self._readings[self._next_index][0] <= t_s
        ):
            due = self._readings[self._next_index]
            self._next_index += 1
        if due is None:
            return None
        return repr(due[1])

    def clear(self) -> None:
        self._next_index = 0
