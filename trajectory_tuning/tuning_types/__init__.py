################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Type definitions for trajectory parameter tuning."""

from __future__ import annotations

from trajectory_tuning.tuning_types.corpus import CorpusEntry
from trajectory_tuning.tuning_types.corpus import SeedQueue
from trajectory_tuning.tuning_types.corpus import TrainingCorpus
from trajectory_tuning.tuning_types.pose import Pose
from trajectory_tuning.tuning_types.sensor_sample import SensorSample


__all__ = [
    "CorpusEntry",
    "Pose",
    "SeedQueue",
    "SensorSample",
    "TrainingCorpus",
]
