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
Dead-reckoning trajectory predictor

Integrates a planar vehicle model from wheel odometry, steering, gyroscope,
magnetometer and visual odometry samples. Every tunable parameter in
PredictionParams feeds into one stage of the model:

    * Speed blends odometry and camera speed by camera confidence, then is
      smoothed with a Gaussian kernel over time
    * Yaw rate blends the gyroscope with a kinematic bicycle steering model
    * Heading integrates the yaw rate and is corrected toward the camera
      heading, either by confidence weighting or by an unscented filter
    * Optionally, heading is pulled toward the magnetometer

Heading is kept unwrapped so that the first-to-last heading difference counts
the loops driven.
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from trajectory_tuning.params.prediction_params import BlendingParams
from trajectory_tuning.params.prediction_params import ModeFlags
from trajectory_tuning.params.prediction_params import PredictionParams
from trajectory_tuning.prediction.predictor import PredictionFailure
from trajectory_tuning.prediction.scalar_filters import HeadingUkf
from trajectory_tuning.prediction.scalar_filters import ScalarKalmanFilter
from trajectory_tuning.prediction.scalar_filters import wrap_angle
from trajectory_tuning.tuning_types.pose import Pose
from trajectory_tuning.tuning_types.sensor_sample import SensorSample


# Units: m. Meaning: distance between front and rear axle
WHEELBASE_M: float = 0.26

# Units: sigma. Meaning: half-width of the truncated smoothing kernel
_KERNEL_TRUNCATION: float = 4.0


def confidence_weight(confidence: float, exponent: float, use_sin: bool) -> float:
    """Map a camera confidence in [0, 1] to a blending weight in [0, 1]."""
    if confidence <= 0.0:
        return 0.0
    base: float = math.sin(confidence * math.pi / 2.0) if use_sin else confidence
    return min(max(base, 0.0), 1.0) ** exponent


def smooth_speeds(
    times_s: NDArray[np.float64], speeds_mps: NDArray[np.float64], sigma_s: float
) -> NDArray[np.float64]:
    """Smooth a speed series with a truncated Gaussian kernel over time."""
    if sigma_s <= 0.0:
        raise ValueError("sigma_s must be positive")

    half_width: float = _KERNEL_TRUNCATION * sigma_s
    lo: NDArray[np.intp] = np.searchsorted(times_s, times_s - half_width, side="left")
    hi: NDArray[np.intp] = np.searchsorted(times_s, times_s + half_width, side="right")

    smoothed: NDArray[np.float64] = np.empty_like(speeds_mps)
    for i in range(times_s.shape[0]):
        window_t: NDArray[np.float64] = times_s[lo[i] : hi[i]]
        weights: NDArray[np.float64] = np.exp(
            -0.5 * ((window_t - times_s[i]) / sigma_s) ** 2
        )
        smoothed[i] = float(np.dot(weights, speeds_mps[lo[i] : hi[i]]) / weights.sum())
    return smoothed


class DeadReckoningPredictor:
    """Reference TrajectoryPredictor for ground vehicles with Ackermann steering."""

    def __init__(self, wheelbase_m: float = WHEELBASE_M) -> None:
        if wheelbase_m <= 0.0:
            raise ValueError("wheelbase_m must be positive")
        self._wheelbase_m: float = wheelbase_m

    def predict(
        self, samples: Sequence[SensorSample], params: PredictionParams
    ) -> tuple[Pose, ...]:
        """Return one predicted pose per sample."""
        if len(samples) < 2:
            raise PredictionFailure("At least two samples are required")

        times_s: NDArray[np.float64] = np.array(
            [sample.t_s for sample in samples], dtype=np.float64
        )
        if np.any(np.diff(times_s) <= 0.0):
            raise PredictionFailure("Sample times must be strictly increasing")

        try:
            return self._integrate(samples, times_s, params)
        except ValueError as exc:
            raise PredictionFailure(str(exc)) from exc

    def _fused_speeds(
        self, samples: Sequence[SensorSample], params: PredictionParams
    ) -> NDArray[np.float64]:
        speeds: NDArray[np.float64] = np.empty(len(samples), dtype=np.float64)
        for i, sample in enumerate(samples):
            if sample.camera_speed_mps is None:
                speeds[i] = sample.speed_mps
                continue
            weight: float = confidence_weight(
                sample.camera_confidence,
                params.blending.speed_exponent_cc,
                params.flags.speed_use_sin_cc,
            )
            speeds[i] = weight * sample.camera_speed_mps + (1.0 - weight) * (
                sample.speed_mps
            )
        return speeds

    def _initial_heading(
        self, sample: SensorSample, params: PredictionParams
    ) -> float:
        camera_heading_rad: float | None = sample.camera_heading_rad
        if camera_heading_rad is not None and sample.camera_confidence > 0.0:
            return camera_heading_rad
        if params.flags.mag_influence and sample.mag_heading_rad is not None:
            return sample.mag_heading_rad
        return 0.0

    def _integrate(
        self,
        samples: Sequence[SensorSample],
        times_s: NDArray[np.float64],
        params: PredictionParams,
    ) -> tuple[Pose, ...]:
        blending: BlendingParams = params.blending
        flags: ModeFlags = params.flags

        speeds: NDArray[np.float64] = smooth_speeds(
            times_s,
            self._fused_speeds(samples, params),
            blending.sigma_speed_kernel,
        )

        gyro_filter: ScalarKalmanFilter | None = None
        if flags.kalman_filter_gyro:
            gyro_filter = ScalarKalmanFilter(
                params.gyro_filter.process_noise,
                params.gyro_filter.measurement_noise,
            )
        camera_filter: ScalarKalmanFilter | None = None
        if flags.kalman_filter_camera:
            camera_filter = ScalarKalmanFilter(
                params.camera_filter.process_noise,
                params.camera_filter.measurement_noise,
                angular=True,
            )

        first: SensorSample = samples[0]
        heading_rad: float = self._initial_heading(first, params)
        ukf: HeadingUkf | None = None
        if flags.ukf:
            ukf = HeadingUkf(
                heading_rad,
                process_noise=params.ukf_filter.process_noise,
                measurement_noise=params.ukf_filter.measurement_noise,
                kappa=params.ukf_filter.kappa,
                alpha=params.ukf_filter.alpha,
            )

        position_m: NDArray[np.float64] = np.zeros(3, dtype=np.float64)
        poses: list[Pose] = [
            Pose(
                t_s=first.t_s,
                position_m=position_m.copy(),
                heading_rad=heading_rad,
                pitch_rad=first.pitch_rad,
                roll_rad=first.roll_rad,
            )
        ]

        for i in range(1, len(samples)):
            sample: SensorSample = samples[i]
            dt_s: float = float(times_s[i] - times_s[i - 1])
            speed_mps: float = float(speeds[i])

            omega_gyro: float = sample.yaw_rate_rads
            if gyro_filter is not None:
                omega_gyro = gyro_filter.update(omega_gyro)

            steer_speed_mps: float = blending.odo_steer_factor * speed_mps + (
                1.0 - blending.odo_steer_factor
            ) * sample.speed_mps
            steer_rad: float = sample.steering_angle_rad * blending.steer_angle_factor
            omega_steer: float = (
                steer_speed_mps * math.tan(steer_rad) / self._wheelbase_m
            )
            omega: float = blending.odo_gyro_factor * omega_gyro + (
                1.0 - blending.odo_gyro_factor
            ) * omega_steer

            if ukf is not None:
                heading_rad = ukf.predict(omega, dt_s)
            else:
                heading_rad += omega * dt_s

            camera_heading: float | None = sample.camera_heading_rad
            if camera_heading is not None and sample.camera_confidence > 0.0:
                if camera_filter is not None:
                    camera_heading = camera_filter.update(camera_heading)
                weight: float = confidence_weight(
                    sample.camera_confidence, blending.exponent_cc, flags.use_sin_cc
                )
                if ukf is not None:
                    heading_rad = ukf.update(camera_heading, weight)
                else:
                    heading_rad += weight * wrap_angle(camera_heading - heading_rad)

            if flags.mag_influence and sample.mag_heading_rad is not None:
                correction: float = blending.odo_mag_factor * wrap_angle(
                    sample.mag_heading_rad - heading_rad
                )
                heading_rad += correction
                if ukf is not None:
                    ukf.shift(correction)

            pitch_rad: float = sample.pitch_rad
            position_m = position_m + speed_mps * dt_s * np.array(
                [
                    math.cos(heading_rad) * math.cos(pitch_rad),
                    math.sin(heading_rad) * math.cos(pitch_rad),
                    math.sin(pitch_rad),
                ],
                dtype=np.float64,
            )
            if not (math.isfinite(heading_rad) and np.all(np.isfinite(position_m))):
                raise PredictionFailure(f"Prediction diverged at sample {i}")

            poses.append(
                Pose(
                    t_s=sample.t_s,
                    position_m=position_m,
                    heading_rad=heading_rad,
                    pitch_rad=pitch_rad,
                    roll_rad=sample.roll_rad,
                )
            )

        return tuple(poses)
