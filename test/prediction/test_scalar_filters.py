################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Tests for the scalar Kalman and unscented heading filters."""

from __future__ import annotations

import math

import pytest

from trajectory_tuning.prediction.scalar_filters import HeadingUkf
from trajectory_tuning.prediction.scalar_filters import ScalarKalmanFilter
from trajectory_tuning.prediction.scalar_filters import wrap_angle


def _build_ukf(heading_rad: float = 0.0) -> HeadingUkf:
    return HeadingUkf(
        heading_rad,
        process_noise=0.1,
        measurement_noise=0.5,
        kappa=0.0,
        alpha=1.0,
    )


def test_wrap_angle() -> None:
    """Angles should wrap into [-pi, pi)."""
    assert wrap_angle(0.5) == pytest.approx(0.5)
    assert wrap_angle(2.5 * math.pi) == pytest.approx(0.5 * math.pi)
    assert wrap_angle(-1.5 * math.pi) == pytest.approx(0.5 * math.pi)


def test_kalman_first_update_initializes() -> None:
    """The first measurement becomes the estimate."""
    kf: ScalarKalmanFilter = ScalarKalmanFilter(0.1, 1.0)
    assert kf.update(2.5) == 2.5
    assert kf.update(2.5) == 2.5


def test_kalman_blends_measurements() -> None:
    """Equal prior and measurement variance yields the midpoint."""
    kf: ScalarKalmanFilter = ScalarKalmanFilter(0.0, 1.0)
    kf.update(0.0)
    assert kf.update(2.0) == pytest.approx(1.0)


def test_kalman_ignores_zero_weight() -> None:
    """A zero-confidence measurement leaves the estimate unchanged."""
    kf: ScalarKalmanFilter = ScalarKalmanFilter(0.1, 1.0)
    kf.update(1.0)
    assert kf.update(5.0, weight=0.0) == 1.0


def test_kalman_exact_measurement() -> None:
    """With no noise at all the measurement is taken as is."""
    kf: ScalarKalmanFilter = ScalarKalmanFilter(0.0, 0.0)
    kf.update(1.0)
    kf.update(1.0)
    assert kf.update(3.0) == 3.0


def test_kalman_angular_innovation_wraps() -> None:
    """Angular channels correct across the +-pi seam."""
    kf: ScalarKalmanFilter = ScalarKalmanFilter(0.0, 1.0, angular=True)
    kf.update(3.0)
    estimate: float = kf.update(-3.0)
    assert estimate == pytest.approx(3.0 + (2.0 * math.pi - 6.0) / 2.0)


def test_kalman_rejects_negative_noise() -> None:
    with pytest.raises(ValueError):
        ScalarKalmanFilter(-0.1, 1.0)
    with pytest.raises(ValueError):
        ScalarKalmanFilter(0.1, -1.0)


def test_ukf_predict_integrates_rate() -> None:
    """Prediction should advance the heading by rate times dt."""
    ukf: HeadingUkf = _build_ukf()
    assert ukf.predict(1.0, 0.5) == pytest.approx(0.5)
    assert ukf.predict(-2.0, 0.5) == pytest.approx(-0.5)


def test_ukf_update_moves_toward_measurement() -> None:
    """A heading measurement pulls the estimate part of the way."""
    ukf: HeadingUkf = _build_ukf()
    estimate: float = ukf.update(0.5)
    assert 0.0 < estimate < 0.5
    assert ukf.heading_rad == estimate


def test_ukf_update_keeps_unwrapped_heading() -> None:
    """Measurements are compared on the unit circle, not as raw angles."""
    ukf: HeadingUkf = _build_ukf(2.0 * math.pi)
    estimate: float = ukf.update(0.2)
    assert 2.0 * math.pi < estimate < 2.0 * math.pi + 0.2


def test_ukf_zero_weight_and_shift() -> None:
    """Zero weight skips the update and shift applies a correction."""
    ukf: HeadingUkf = _build_ukf(1.0)
    assert ukf.update(2.0, weight=0.0) == 1.0
    ukf.shift(0.25)
    assert ukf.heading_rad == 1.25


def test_ukf_rejects_invalid_constants() -> None:
    with pytest.raises(ValueError):
        HeadingUkf(0.0, process_noise=0.1, measurement_noise=0.5, kappa=0.0, alpha=0.0)
    with pytest.raises(ValueError):
        HeadingUkf(0.0, process_noise=0.1, measurement_noise=0.0, kappa=0.0, alpha=1.0)
