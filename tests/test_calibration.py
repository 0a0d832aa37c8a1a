from __future__ import annotations

import math

import pytest

from pourflow.calibration import (
    CalibrationModel,
    CalibrationPoint,
    build_calibration_points,
    fit_affine,
)
from pourflow.errors import CalibrationError, InsufficientDataError
from pourflow.integration import RunningIntegral
from pourflow.readings import ScaleReading


def test_fit_recovers_exact_line() -> None:
    model = CalibrationModel()

    fit = model.fit([(1.0, 2.0), (2.0, 4.0), (3.0, 6.0)])

    assert fit.slope == pytest.approx(2.0, abs=1e-6)
    assert fit.offset == pytest.approx(0.0, abs=1e-6)
    assert fit.degenerate is False
    assert fit.rms_residual_g == pytest.approx(0.0, abs=1e-9)
    assert model.params == (fit.slope, fit.offset)


def test_fit_least_squares_with_noise() -> None:
    points = [CalibrationPoint(x=x, mass_g=3.0 * x + 5.0 + noise) for x, noise in [
        (0.0, 0.1),
        (1.0, -0.1),
        (2.0, 0.1),
        (3.0, -0.1),
    ]]

    fit = fit_affine(points)

    assert fit.slope == pytest.approx(2.96, abs=1e-9)
    assert fit.offset == pytest.approx(5.06, abs=1e-9)
    assert fit.rms_residual_g > 0.0


def test_fit_with_too_few_points_leaves_model_untouched() -> None:
    model = CalibrationModel(slope=4.0, offset=-1.0)

    with pytest.raises(InsufficientDataError) as error_info:
        model.fit([(1.0, 2.0)])

    assert isinstance(error_info.value, CalibrationError)
    assert error_info.value.n_points == 1
    assert model.params == (4.0, -1.0)
    assert model.last_fit is None


def test_degenerate_fit_is_flagged_and_finite() -> None:
    model = CalibrationModel()

    fit = model.fit([(0.9, 10.0), (0.9, 12.0), (0.9, 14.0)])

    assert fit.degenerate is True
    assert math.isfinite(fit.slope)
    assert math.isfinite(fit.offset)


def test_apply_defaults_to_identity() -> None:
    model = CalibrationModel()

    assert model.apply(0.0) == 0.0
    assert model.apply(12.5) == 12.5


def test_refit_overwrites_previous_pair() -> None:
    model = CalibrationModel()
    model.fit([(0.0, 0.0), (1.0, 10.0)])
    model.fit([(0.0, 1.0), (1.0, 3.0)])

    assert model.slope == pytest.approx(2.0)
    assert model.offset == pytest.approx(1.0)


def test_build_calibration_points_uses_integral_prefix_at_reading_time() -> None:
    integral = RunningIntegral()
    for t_s in range(10):
        integral.append(float(t_s), 0.1)
    readings = [
        ScaleReading(t_s=0.0, mass_g=10.0, source="manual"),
        ScaleReading(t_s=4.0, mass_g=30.0, source="ocr", confidence=0.9),
        ScaleReading(t_s=9.0, mass_g=55.0, source="manual"),
    ]

    points = build_calibration_points(integral, readings)

    assert [point.mass_g for point in points] == [10.0, 30.0, 55.0]
    assert points[0].x == 0.0
    assert points[1].x == pytest.approx(0.4)
    assert points[2].x == pytest.approx(0.9)


def test_distinct_small_x_values_fit_exactly() -> None:
    fit = fit_affine([(0.0, 0.0), (1e-7, 1.0)])

    assert fit.degenerate is False
    assert fit.slope == pytest.approx(1e7)
    assert fit.offset == pytest.approx(0.0, abs=1e-9)
    assert fit.rms_residual_g == pytest.approx(0.0, abs=1e-9)


def test_all_zero_x_is_degenerate() -> None:
    fit = fit_affine([(0.0, 1.0), (0.0, 3.0)])

    assert fit.degenerate is True
    assert math.isfinite(fit.slope)
