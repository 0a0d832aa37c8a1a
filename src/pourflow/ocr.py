from __future__ import annotations

import asyncio
import logging
import math
import re
from typing import Protocol

import numpy as np

from .readings import OcrResult

logger = logging.getLogger(__name__)

DISPLAY_CONTRAST_GAIN = 2.0
DISPLAY_BINARY_THRESHOLD = 160
TESSERACT_CONFIG = "--psm 7 --oem 1 -c tessedit_char_whitelist=0123456789."

_LEADING_NUMBER = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)")


class DigitRecognizer(Protocol):
    async def recognize(self, region: np.ndarray) -> OcrResult: ...


def crop_region(
    gray_frame: np.ndarray, region: tuple[int, int, int, int] | None
) -> np.ndarray:
    if region is None:
        return gray_frame

    x, y, w, h = region
    if w <= 0 or h <= 0:
        raise ValueError("region width and height must be positive")
    height, width = gray_frame.shape[:2]
    if x < 0 or y < 0 or x + w > width or y + h > height:
        raise ValueError("region is outside frame bounds")
    return gray_frame[y : y + h, x : x + w]


def enhance_display_region(gray_region: np.ndarray) -> np.ndarray:
    """Contrast-stretch around mid-gray and binarize a scale display crop."""

    stretched = (gray_region.astype(np.float64) - 128.0) * DISPLAY_CONTRAST_GAIN + 128.0
    stretched = np.clip(stretched, 0.0, 255.0)
    return np.where(stretched > DISPLAY_BINARY_THRESHOLD, 255, 0).astype(np.uint8)


def parse_display_text(text: str, confidence_pct: float) -> OcrResult:
    """Read the leading decimal number of OCR text; confidence is given in percent."""

    match = _LEADING_NUMBER.match(text or "")
    value = float(match.group(0)) if match else math.nan
    confidence = confidence_pct / 100.0 if math.isfinite(confidence_pct) else 0.0
    return OcrResult(value=value, confidence=min(max(confidence, 0.0), 1.0))


class OcrThrottle:
    """Allows one OCR attempt per minimum interval of tick time."""

    def __init__(self, min_interval_s: float = 0.5) -> None:
        if min_interval_s < 0:
            raise ValueError("min_interval_s cannot be negative")
        self.min_interval_s = min_interval_s
        self._last_attempt_s: float | None = None

    def ready(self, t_s: float) -> bool:
        if self._last_attempt_s is None:
            return True
        return t_s - self._last_attempt_s >= self.min_interval_s

    def mark(self, t_s: float) -> None:
        self._last_attempt_s = t_s

    def reset(self) -> None:
        self._last_attempt_s = None


class TesseractRecognizer:
    """Seven-segment scale display reader backed by Tesseract."""

    def __init__(self, config: str = TESSERACT_CONFIG) -> None:
        try:
            import pytesseract
        except ModuleNotFoundError as error:
            raise RuntimeError(
                "pytesseract is required for scale OCR. Install with: pip install -e '.[ocr]'"
            ) from error
        self._pytesseract = pytesseract
        self.config = config

    def _recognize_sync(self, region: np.ndarray) -> OcrResult:
        enhanced = enhance_display_region(region)
        data = self._pytesseract.image_to_data(
            enhanced,
            config=self.config,
            output_type=self._pytesseract.Output.DICT,
        )
        words: list[str] = []
        confidences: list[float] = []
        for word, confidence in zip(data.get("text", []), data.get("conf", []), strict=False):
            word = (word or "").strip()
            if not word:
                continue
            words.append(word)
            confidences.append(float(confidence))

        text = "".join(words)
        mean_confidence = sum(confidences) / len(confidences) if confidences else 0.0
        result = parse_display_text(text, mean_confidence)
        logger.debug("OCR text %r -> %s (confidence %.2f)", text, result.value, result.confidence)
        return result

    async def recognize(self, region: np.ndarray) -> OcrResult:
        return await asyncio.to_thread(self._recognize_sync, region)
