from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from .errors import InsufficientDataError
from .integration import RunningIntegral
from .readings import ScaleReading

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalibrationPoint:
    """Integrated raw units paired with a truth mass reading."""

    x: float
    mass_g: float


@dataclass(frozen=True)
class CalibrationFit:
    """Least-squares affine fit mass = slope * x + offset."""

    slope: float
    offset: float
    n_points: int
    degenerate: bool
    rms_residual_g: float


def fit_affine(
    points: Iterable[CalibrationPoint | tuple[float, float]], floor: float = 1e-12
) -> CalibrationFit:
    """Ordinary least squares via the closed-form normal equations.

    When all x values coincide the denominator is replaced by ``floor``. The
    result is finite but unstable and is reported with ``degenerate=True``.
    """

    pairs = [
        (point.x, point.mass_g) if isinstance(point, CalibrationPoint) else point
        for point in points
    ]
    n = len(pairs)
    if n < 2:
        raise InsufficientDataError(n)

    sum_x = math.fsum(x for x, _ in pairs)
    sum_y = math.fsum(y for _, y in pairs)
    sum_xx = math.fsum(x * x for x, _ in pairs)
    sum_xy = math.fsum(x * y for x, y in pairs)

    denominator = n * sum_xx - sum_x * sum_x
    degenerate = abs(denominator) <= floor * n * sum_xx
    if degenerate:
        denominator = floor

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    offset = (sum_y - slope * sum_x) / n
    residuals = [y - (slope * x + offset) for x, y in pairs]
    rms = math.sqrt(math.fsum(value * value for value in residuals) / n)

    return CalibrationFit(
        slope=slope,
        offset=offset,
        n_points=n,
        degenerate=degenerate,
        rms_residual_g=rms,
    )


class CalibrationModel:
    """Affine map from integrated raw units to grams.

    The (slope, offset) pair is held in a single tuple and replaced in one
    assignment, so readers never see a half-updated model.
    """

    def __init__(self, slope: float = 1.0, offset: float = 0.0, floor: float = 1e-12) -> None:
        self._params = (slope, offset)
        self.floor = floor
        self.last_fit: CalibrationFit | None = None

    @property
    def params(self) -> tuple[float, float]:
        return self._params

    @property
    def slope(self) -> float:
        return self._params[0]

    @property
    def offset(self) -> float:
        return self._params[1]

    def apply(self, x: float) -> float:
        slope, offset = self._params
        return slope * x + offset

    def fit(self, points: Iterable[CalibrationPoint | tuple[float, float]]) -> CalibrationFit:
        result = fit_affine(points, floor=self.floor)
        if result.degenerate:
            logger.warning(
                "degenerate calibration: all %d points share one x value", result.n_points
            )
        self._params = (result.slope, result.offset)
        self.last_fit = result
        logger.info(
            "calibration updated: slope=%.6g offset=%.6g n=%d",
            result.slope,
            result.offset,
            result.n_points,
        )
        return result


def build_calibration_points(
    integral: RunningIntegral, readings: Sequence[ScaleReading]
) -> list[CalibrationPoint]:
    """Pair each reading with the integral over the flow history up to its time."""

    return [
        CalibrationPoint(x=integral.value_at(reading.t_s), mass_g=reading.mass_g)
        for reading in readings
    ]
