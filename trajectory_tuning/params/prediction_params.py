################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Tunable parameters of the trajectory prediction model.

The parameters are split into tagged groups. The blending group is always
active. The camera filter, gyroscope filter and unscented filter groups are
only varied while their governing flag is set, but their stored values are
kept when the flag is cleared so that re-enabling a filter restores its last
tuning.

Every continuous field is described by a FieldStep that carries its search
step and its valid range. The same table drives validation and neighbor
generation.
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass
from dataclasses import fields
from dataclasses import replace
from typing import Any


# Camera confidence exponent used when blending camera heading
BLENDING_EXPONENT_CC: float = 1.0
# Camera confidence exponent used when blending camera speed
BLENDING_SPEED_EXPONENT_CC: float = 1.0
# Weight of the gyroscope rate against the steering rate, unitless in [0, 1]
BLENDING_ODO_GYRO_FACTOR: float = 0.5
# Pull of the magnetometer heading per sample, unitless in [0, 1]
BLENDING_ODO_MAG_FACTOR: float = 0.1
# Weight of fused speed against raw odometry speed for steering, in [0, 1]
BLENDING_ODO_STEER_FACTOR: float = 0.5
# Scale applied to the commanded steering angle, unitless
BLENDING_STEER_ANGLE_FACTOR: float = 1.0
# Gaussian kernel width for speed smoothing in seconds
BLENDING_SIGMA_SPEED_KERNEL: float = 0.5

# Camera filter process noise in rad^2
CAMERA_FILTER_PROCESS_NOISE: float = 0.1
# Camera filter measurement noise in rad^2
CAMERA_FILTER_MEASUREMENT_NOISE: float = 1.0

# Gyroscope filter process noise in (rad/s)^2
GYRO_FILTER_PROCESS_NOISE: float = 0.1
# Gyroscope filter measurement noise in (rad/s)^2
GYRO_FILTER_MEASUREMENT_NOISE: float = 1.0

# Unscented filter process noise in rad^2
UKF_PROCESS_NOISE: float = 0.1
# Unscented filter measurement noise, unitless^2
UKF_MEASUREMENT_NOISE: float = 0.5
# Unscented transform secondary scaling parameter
UKF_KAPPA: float = 0.0
# Unscented transform sigma point spread
UKF_ALPHA: float = 0.001

# Stricter odo_gyro_factor floor while the magnetometer is in the loop
ODO_GYRO_FACTOR_MAG_FLOOR: float = 0.01


class PredictionParamsError(Exception):
    """Raised when prediction parameter validation fails."""


@dataclass(frozen=True)
class FieldStep:
    """Search step and valid range of one continuous field.

    Attributes:
        name: Field name within its group
        delta: Step applied in both directions by the neighbor search
        lower: Inclusive lower bound
        upper: Inclusive upper bound, or None when unbounded
        lower_with_mag: Inclusive lower bound while mag_influence is set, or
            None when the bound does not depend on the magnetometer
    """

    name: str
    delta: float
    lower: float = 0.0
    upper: float | None = None
    lower_with_mag: float | None = None

    def lower_bound(self, params: PredictionParams) -> float:
        """Return the lower bound in the context of a parameter set."""
        if self.lower_with_mag is not None and params.flags.mag_influence:
            return self.lower_with_mag
        return self.lower

    def admits(self, value: float, params: PredictionParams) -> bool:
        """Return True if the value lies within the field's range."""
        if value < self.lower_bound(params):
            return False
        if self.upper is not None and value > self.upper:
            return False
        return True


@dataclass(frozen=True)
class ParamGroup:
    """A tagged group of continuous fields sharing an activation gate.

    Attributes:
        name: Attribute name of the group on PredictionParams
        steps: Field descriptors in search order
        gate: Name of the governing flag on ModeFlags, or None when the
            group is always active
    """

    name: str
    steps: tuple[FieldStep, ...]
    gate: str | None = None

    def is_active(self, params: PredictionParams) -> bool:
        """Return True if the group takes part in prediction and search."""
        if self.gate is None:
            return True
        return bool(getattr(params.flags, self.gate))


@dataclass(frozen=True)
class BlendingParams:
    """Always-active sensor blending parameters."""

    # Camera confidence exponent for heading blending
    exponent_cc: float = BLENDING_EXPONENT_CC
    # Camera confidence exponent for speed blending
    speed_exponent_cc: float = BLENDING_SPEED_EXPONENT_CC
    # Weight of the gyroscope yaw rate against the steering yaw rate
    odo_gyro_factor: float = BLENDING_ODO_GYRO_FACTOR
    # Magnetometer heading pull per sample
    odo_mag_factor: float = BLENDING_ODO_MAG_FACTOR
    # Weight of fused speed against odometry speed in the steering model
    odo_steer_factor: float = BLENDING_ODO_STEER_FACTOR
    # Steering angle scale
    steer_angle_factor: float = BLENDING_STEER_ANGLE_FACTOR
    # Speed smoothing kernel width in seconds
    sigma_speed_kernel: float = BLENDING_SIGMA_SPEED_KERNEL


@dataclass(frozen=True)
class ModeFlags:
    """Boolean switches selecting prediction model variants."""

    # Use a sine curve instead of a power curve for speed confidence
    speed_use_sin_cc: bool = False
    # Use a sine curve instead of a power curve for heading confidence
    use_sin_cc: bool = False
    # Filter the camera heading channel
    kalman_filter_camera: bool = False
    # Filter the gyroscope channel
    kalman_filter_gyro: bool = False
    # Pull heading toward the magnetometer
    mag_influence: bool = False
    # Fuse camera heading with the unscented filter
    ukf: bool = False


@dataclass(frozen=True)
class NoiseFilterParams:
    """Noise parameters of a scalar Kalman filter channel."""

    process_noise: float
    measurement_noise: float


@dataclass(frozen=True)
class UkfParams:
    """Tuning constants of the unscented heading filter."""

    process_noise: float = UKF_PROCESS_NOISE
    measurement_noise: float = UKF_MEASUREMENT_NOISE
    kappa: float = UKF_KAPPA
    alpha: float = UKF_ALPHA


BLENDING_GROUP: ParamGroup = ParamGroup(
    name="blending",
    steps=(
        FieldStep("exponent_cc", 0.1),
        FieldStep("speed_exponent_cc", 0.1),
        FieldStep(
            "odo_gyro_factor",
            0.1,
            upper=1.0,
            lower_with_mag=ODO_GYRO_FACTOR_MAG_FLOOR,
        ),
        FieldStep("odo_mag_factor", 0.1, upper=1.0),
        FieldStep("odo_steer_factor", 0.1, upper=1.0),
        FieldStep("steer_angle_factor", 0.02, upper=10.0),
        FieldStep("sigma_speed_kernel", 0.1, lower=0.015),
    ),
)

CAMERA_FILTER_GROUP: ParamGroup = ParamGroup(
    name="camera_filter",
    steps=(
        FieldStep("process_noise", 0.1),
        FieldStep("measurement_noise", 0.1),
    ),
    gate="kalman_filter_camera",
)

GYRO_FILTER_GROUP: ParamGroup = ParamGroup(
    name="gyro_filter",
    steps=(
        FieldStep("process_noise", 0.1),
        FieldStep("measurement_noise", 0.1),
    ),
    gate="kalman_filter_gyro",
)

UKF_GROUP: ParamGroup = ParamGroup(
    name="ukf_filter",
    steps=(
        FieldStep("process_noise", 0.1, upper=1.0),
        FieldStep("measurement_noise", 0.1, lower=0.01),
        FieldStep("kappa", 0.1),
        FieldStep("alpha", 0.001, lower=0.00001),
    ),
    gate="ukf",
)

# Continuous groups in search order
PARAM_GROUPS: tuple[ParamGroup, ...] = (
    BLENDING_GROUP,
    CAMERA_FILTER_GROUP,
    GYRO_FILTER_GROUP,
    UKF_GROUP,
)

# Boolean flags in search order
FLAG_NAMES: tuple[str, ...] = tuple(flag.name for flag in fields(ModeFlags))


@dataclass(frozen=True)
class PredictionParams:
    """Complete tunable configuration of the trajectory prediction model.

    Instances are immutable values. Search steps derive new instances with
    with_value() and toggled() instead of mutating a shared working copy.
    """

    blending: BlendingParams
    flags: ModeFlags
    camera_filter: NoiseFilterParams
    gyro_filter: NoiseFilterParams
    ukf_filter: UkfParams

    @classmethod
    def defaults(cls) -> PredictionParams:
        """Return the default prediction parameters."""
        return cls(
            blending=BlendingParams(),
            flags=ModeFlags(),
            camera_filter=NoiseFilterParams(
                process_noise=CAMERA_FILTER_PROCESS_NOISE,
                measurement_noise=CAMERA_FILTER_MEASUREMENT_NOISE,
            ),
            gyro_filter=NoiseFilterParams(
                process_noise=GYRO_FILTER_PROCESS_NOISE,
                measurement_noise=GYRO_FILTER_MEASUREMENT_NOISE,
            ),
            ukf_filter=UkfParams(),
        )

    def validate(self) -> None:
        """Validate field types and declared ranges."""
        for flag_name in FLAG_NAMES:
            if not isinstance(getattr(self.flags, flag_name), bool):
                raise PredictionParamsError(f"flags.{flag_name} must be a bool")

        for group in PARAM_GROUPS:
            values: Any = getattr(self, group.name)
            for step in group.steps:
                scope: str = f"{group.name}.{step.name}"
                value: Any = getattr(values, step.name)
                if isinstance(value, bool) or not isinstance(value, numbers.Real):
                    raise PredictionParamsError(f"{scope} must be a number")
                if not math.isfinite(value):
                    raise PredictionParamsError(f"{scope} must be finite")
                if not step.admits(float(value), self):
                    raise PredictionParamsError(
                        f"{scope}={value} is outside "
                        f"[{step.lower_bound(self)}, {step.upper}]"
                    )

    def value(self, group: str, name: str) -> float:
        """Return the value of a continuous field."""
        return float(getattr(getattr(self, group), name))

    def with_value(self, group: str, name: str, value: float) -> PredictionParams:
        """Return a copy with one continuous field changed."""
        updated: Any = replace(getattr(self, group), **{name: value})
        return replace(self, **{group: updated})

    def toggled(self, flag_name: str) -> PredictionParams:
        """Return a copy with one boolean flag inverted."""
        current: bool = bool(getattr(self.flags, flag_name))
        flags: ModeFlags = replace(self.flags, **{flag_name: not current})
        return replace(self, flags=flags)

    def replace(self, **group_overrides: Any) -> PredictionParams:
        """Return a modified copy of the parameters."""
        return replace(self, **group_overrides)

    def as_nested_dict(self) -> dict[str, Any]:
        """Return a nested dict representation for logging and storage."""
        return {
            item.name: {
                entry.name: getattr(getattr(self, item.name), entry.name)
                for entry in fields(getattr(self, item.name))
            }
            for item in fields(self)
        }
