################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Contract between the optimizer and the trajectory prediction model."""

from __future__ import annotations

from typing import Protocol
from typing import Sequence

from trajectory_tuning.params.prediction_params import PredictionParams
from trajectory_tuning.tuning_types.pose import Pose
from trajectory_tuning.tuning_types.sensor_sample import SensorSample


class PredictionFailure(Exception):
    """Raised when a trajectory cannot be predicted from a sensor sequence."""


class TrajectoryPredictor(Protocol):
    """Maps a recorded sensor sequence and parameters to predicted poses.

    Implementations must be pure from the optimizer's point of view and safe
    to call from several threads at once. Malformed input and numerical
    divergence are reported by raising PredictionFailure, never by returning
    non-finite poses.
    """

    def predict(
        self, samples: Sequence[SensorSample], params: PredictionParams
    ) -> tuple[Pose, ...]:
        """Return one predicted pose per sample."""
        ...
