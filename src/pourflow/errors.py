from __future__ import annotations


class PourFlowError(Exception):
    """Base class for pour estimation errors."""


class AcquisitionError(PourFlowError):
    """Raised when the upstream frame source cannot be opened."""


class DetectionError(PourFlowError):
    """Raised by marker or OCR backends for failed or malformed detections."""


class CalibrationError(PourFlowError):
    """Base class for calibration failures."""


class InsufficientDataError(CalibrationError):
    """Raised when fewer than two calibration points are available."""

    def __init__(self, n_points: int) -> None:
        super().__init__(f"at least two calibration points are required (got {n_points})")
        self.n_points = n_points
