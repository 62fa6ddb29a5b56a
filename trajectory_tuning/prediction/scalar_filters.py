################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""
Scalar filters used by the dead-reckoning predictor

Both filters track a single state. The Kalman filter models a random walk
observed directly. The unscented filter tracks an unwrapped heading observed
through the nonlinear measurement (cos psi, sin psi), which avoids the
discontinuity of wrapped angle measurements.
"""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import NDArray


# Initial state variance for freshly started filters
INITIAL_VARIANCE: float = 1.0

# Unscented transform prior knowledge parameter, optimal for Gaussians
UKF_BETA: float = 2.0

# Number of states tracked by the heading filter
_UKF_DIM: int = 1


def wrap_angle(angle_rad: float) -> float:
    """Wrap an angle into [-pi, pi)."""
    return (angle_rad + math.pi) % (2.0 * math.pi) - math.pi


class ScalarKalmanFilter:
    """Random-walk Kalman filter over one scalar channel."""

    def __init__(
        self,
        process_noise: float,
        measurement_noise: float,
        *,
        angular: bool = False,
    ) -> None:
        if process_noise < 0.0:
            raise ValueError("process_noise must be non-negative")
        if measurement_noise < 0.0:
            raise ValueError("measurement_noise must be non-negative")
        self._q: float = process_noise
        self._r: float = measurement_noise
        self._angular: bool = angular
        self._x: float | None = None
        self._p: float = INITIAL_VARIANCE

    def update(self, z: float, weight: float = 1.0) -> float:
        """Fuse one measurement and return the new estimate.

        The measurement noise is divided by weight, so low-confidence
        measurements move the estimate less.
        """
        if self._x is None:
            self._x = z
            return z

        self._p += self._q
        r: float = self._r / weight if weight > 0.0 else math.inf
        s: float = self._p + r
        # Both variances zero: the measurement is exact
        k: float = 1.0 if s <= 0.0 else self._p / s
        innovation: float = z - self._x
        if self._angular:
            innovation = wrap_angle(innovation)
        self._x = self._x + k * innovation
        self._p = (1.0 - k) * self._p
        return self._x


class HeadingUkf:
    """One-state unscented filter for heading with a unit-circle measurement."""

    def __init__(
        self,
        heading_rad: float,
        *,
        process_noise: float,
        measurement_noise: float,
        kappa: float,
        alpha: float,
    ) -> None:
        if alpha <= 0.0:
            raise ValueError("alpha must be positive")
        if kappa < 0.0:
            raise ValueError("kappa must be non-negative")
        if measurement_noise <= 0.0:
            raise ValueError("measurement_noise must be positive")

        self._x: float = heading_rad
        self._p: float = INITIAL_VARIANCE
        self._q: float = process_noise
        self._r: float = measurement_noise

        n: float = float(_UKF_DIM)
        lam: float = alpha * alpha * (n + kappa) - n
        self._spread: float = n + lam
        weight: float = 1.0 / (2.0 * self._spread)
        self._wm: NDArray[np.float64] = np.array(
            [lam / self._spread, weight, weight], dtype=np.float64
        )
        self._wc: NDArray[np.float64] = self._wm.copy()
        self._wc[0] += 1.0 - alpha * alpha + UKF_BETA

    @property
    def heading_rad(self) -> float:
        """Return the current heading estimate."""
        return self._x

    def _sigma_points(self) -> NDArray[np.float64]:
        offset: float = math.sqrt(self._spread * self._p)
        return np.array(
            [self._x, self._x + offset, self._x - offset], dtype=np.float64
        )

    def predict(self, yaw_rate_rads: float, dt_s: float) -> float:
        """Propagate the heading with a yaw rate over a time step."""
        chi: NDArray[np.float64] = self._sigma_points() + yaw_rate_rads * dt_s
        x_pred: float = float(np.dot(self._wm, chi))
        p_pred: float = float(np.dot(self._wc, (chi - x_pred) ** 2))
        self._x = x_pred
        self._p = max(p_pred, 0.0) + self._q * dt_s
        return self._x

    def update(self, heading_meas_rad: float, weight: float = 1.0) -> float:
        """Fuse one heading measurement and return the new estimate."""
        if weight <= 0.0:
            return self._x

        chi: NDArray[np.float64] = self._sigma_points()
        z_sigma: NDArray[np.float64] = np.stack([np.cos(chi), np.sin(chi)], axis=1)
        z_pred: NDArray[np.float64] = self._wm @ z_sigma
        dz: NDArray[np.float64] = z_sigma - z_pred
        dx: NDArray[np.float64] = chi - self._x

        R: NDArray[np.float64] = np.eye(2, dtype=np.float64) * (self._r / weight)
        outer: NDArray[np.float64] = np.einsum("ni,nj->nij", dz, dz)
        P_zz: NDArray[np.float64] = R + np.tensordot(self._wc, outer, axes=1)
        P_xz: NDArray[np.float64] = (self._wc * dx) @ dz

        z: NDArray[np.float64] = np.array(
            [math.cos(heading_meas_rad), math.sin(heading_meas_rad)],
            dtype=np.float64,
        )
        try:
            gain: NDArray[np.float64] = np.linalg.solve(P_zz.T, P_xz)
        except np.linalg.LinAlgError as exc:
            raise ValueError("Singular innovation covariance") from exc

        self._x = self._x + float(gain @ (z - z_pred))
        self._p = max(self._p - float(gain @ P_zz @ gain), 0.0)
        return self._x

    def shift(self, delta_rad: float) -> None:
        """Apply an external correction to the heading estimate."""
        self._x += delta_rad
