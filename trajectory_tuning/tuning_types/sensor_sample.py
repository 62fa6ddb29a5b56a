################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Raw sensor samples recorded by the vehicle."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

import numpy as np


@dataclass(frozen=True)
class SensorSample:
    """One time step of recorded odometry, inertial and camera data.

    Attributes:
        t_s: Sample time in seconds
        speed_mps: Wheel odometry speed in m/s
        steering_angle_rad: Commanded steering angle in radians
        gyro_rads: Gyroscope angular rate [x, y, z] in rad/s
        mag_heading_rad: Magnetometer heading in radians, if available
        camera_heading_rad: Visual odometry heading in radians, if available
        camera_speed_mps: Visual odometry speed in m/s, if available
        camera_confidence: Visual odometry confidence in [0, 1]
        pitch_rad: Pitch reported by the IMU in radians
        roll_rad: Roll reported by the IMU in radians
    """

    t_s: float
    speed_mps: float
    steering_angle_rad: float
    gyro_rads: np.ndarray
    mag_heading_rad: float | None = None
    camera_heading_rad: float | None = None
    camera_speed_mps: float | None = None
    camera_confidence: float = 0.0
    pitch_rad: float = 0.0
    roll_rad: float = 0.0

    def __post_init__(self) -> None:
        """Validate sample fields and coerce arrays."""
        object.__setattr__(self, "t_s", _require_finite(self.t_s, "t_s"))
        object.__setattr__(
            self, "speed_mps", _require_finite(self.speed_mps, "speed_mps")
        )
        object.__setattr__(
            self,
            "steering_angle_rad",
            _require_finite(self.steering_angle_rad, "steering_angle_rad"),
        )
        gyro_rads: np.ndarray = np.asarray(self.gyro_rads, dtype=np.float64)
        if gyro_rads.shape != (3,):
            raise ValueError("gyro_rads must have shape (3,)")
        if not np.all(np.isfinite(gyro_rads)):
            raise ValueError("gyro_rads must contain finite values")
        object.__setattr__(self, "gyro_rads", gyro_rads)

        for name in ("mag_heading_rad", "camera_heading_rad", "camera_speed_mps"):
            value: Any = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, _require_finite(value, name))

        confidence: float = _require_finite(
            self.camera_confidence, "camera_confidence"
        )
        if confidence < 0.0 or confidence > 1.0:
            raise ValueError("camera_confidence must be in [0, 1]")
        object.__setattr__(self, "camera_confidence", confidence)
        object.__setattr__(
            self, "pitch_rad", _require_finite(self.pitch_rad, "pitch_rad")
        )
        object.__setattr__(self, "roll_rad", _require_finite(self.roll_rad, "roll_rad"))

    @property
    def yaw_rate_rads(self) -> float:
        """Return the gyroscope rate about the vertical axis."""
        return float(self.gyro_rads[2])

    def has_camera(self) -> bool:
        """Return True when the sample carries a usable camera observation."""
        return self.camera_heading_rad is not None and self.camera_confidence > 0.0


def _require_finite(value: Any, name: str) -> float:
    """Return a finite float or raise ValueError."""
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a number")
    try:
        result: float = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a number") from exc
    if not math.isfinite(result):
        raise ValueError(f"{name} must be finite")
    return result
