from __future__ import annotations

from collections import deque

import numpy as np

from .roi import ROIRect


def _crop(gray_frame: np.ndarray, roi: ROIRect) -> np.ndarray:
    height, width = gray_frame.shape[:2]
    if roi.width <= 0 or roi.height <= 0:
        raise ValueError("ROI width and height must be positive")
    if roi.x < 0 or roi.y < 0 or roi.x + roi.width > width or roi.y + roi.height > height:
        raise ValueError("ROI is outside frame bounds")
    return gray_frame[roi.y : roi.y + roi.height, roi.x : roi.x + roi.width]


def motion_density(
    current: np.ndarray, previous: np.ndarray, roi: ROIRect, diff_threshold: int = 25
) -> float:
    """Fraction of ROI pixels whose absolute frame difference exceeds the threshold."""

    current_roi = _crop(current, roi).astype(np.int16)
    previous_roi = _crop(previous, roi).astype(np.int16)
    diff = np.abs(current_roi - previous_roi)
    active_pixels = int(np.count_nonzero(diff > diff_threshold))
    return active_pixels / float(roi.area)


class FlowProxyEstimator:
    """Motion density inside the ROI, smoothed by a causal trailing average."""

    def __init__(self, window: int = 5, diff_threshold: int = 25) -> None:
        if window < 1:
            raise ValueError("window must be at least 1")
        self.window = window
        self.diff_threshold = diff_threshold
        self._raw_window: deque[float] = deque(maxlen=window)
        self.last_raw = 0.0

    def reset(self) -> None:
        self._raw_window.clear()
        self.last_raw = 0.0

    @property
    def smoothed(self) -> float:
        if not self._raw_window:
            return 0.0
        return sum(self._raw_window) / len(self._raw_window)

    def push_raw(self, value: float) -> float:
        self._raw_window.append(value)
        self.last_raw = value
        return self.smoothed

    def estimate(
        self, current: np.ndarray, previous: np.ndarray | None, roi: ROIRect
    ) -> float:
        # No motion information: the smoothing window is left untouched.
        if previous is None or previous.shape != current.shape:
            self.last_raw = 0.0
            return 0.0

        raw = motion_density(current, previous, roi, diff_threshold=self.diff_threshold)
        return self.push_raw(raw)
