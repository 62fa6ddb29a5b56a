################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Predicted vehicle poses."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class Pose:
    """Predicted pose of the vehicle at one sample.

    Heading is unwrapped, so its difference between two poses counts the
    number of full turns driven in between.

    Attributes:
        t_s: Pose time in seconds
        position_m: Position [x, y, z] in meters
        heading_rad: Unwrapped heading (yaw) in radians
        pitch_rad: Pitch in radians
        roll_rad: Roll in radians
    """

    t_s: float
    position_m: np.ndarray
    heading_rad: float
    pitch_rad: float = 0.0
    roll_rad: float = 0.0

    def __post_init__(self) -> None:
        """Coerce the position into a float64 array."""
        position_m: np.ndarray = np.asarray(self.position_m, dtype=np.float64)
        if position_m.shape != (3,):
            raise ValueError("position_m must have shape (3,)")
        object.__setattr__(self, "position_m", position_m)

    def attitude(self) -> np.ndarray:
        """Return [heading, pitch, roll] in radians."""
        return np.array(
            [self.heading_rad, self.pitch_rad, self.roll_rad], dtype=np.float64
        )


def loop_closure_error(poses: tuple[Pose, ...]) -> float:
    """Return the distance between the first and last predicted position."""
    if not poses:
        raise ValueError("poses must not be empty")
    return float(np.linalg.norm(poses[0].position_m - poses[-1].position_m))


def heading_change(poses: tuple[Pose, ...]) -> float:
    """Return the absolute heading change between first and last pose."""
    if not poses:
        raise ValueError("poses must not be empty")
    return abs(poses[0].heading_rad - poses[-1].heading_rad)
