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
Single-step neighborhood of a prediction parameter set

The neighborhood is axis aligned: every candidate differs from its origin in
exactly one field. Continuous fields step by their own delta in both
directions, boolean flags are toggled, and conditional groups contribute
only while their governing flag is set. Candidates that would leave a
field's declared range are omitted.
"""

from __future__ import annotations

from trajectory_tuning.params.prediction_params import BLENDING_GROUP
from trajectory_tuning.params.prediction_params import FLAG_NAMES
from trajectory_tuning.params.prediction_params import PARAM_GROUPS
from trajectory_tuning.params.prediction_params import ParamGroup
from trajectory_tuning.params.prediction_params import PredictionParams


def _group_neighbors(
    params: PredictionParams, group: ParamGroup
) -> list[PredictionParams]:
    """Return the plus and minus steps of every field in a group."""
    candidates: list[PredictionParams] = []
    if not group.is_active(params):
        return candidates

    for step in group.steps:
        value: float = params.value(group.name, step.name)

        increased: float = value + step.delta
        if step.admits(increased, params):
            candidates.append(params.with_value(group.name, step.name, increased))

        decreased: float = value - step.delta
        if step.admits(decreased, params):
            candidates.append(params.with_value(group.name, step.name, decreased))

    return candidates


def _flag_admits(toggled: PredictionParams) -> bool:
    """Return True if flipping a flag keeps the blending fields in range."""
    # Only the mag_influence flag changes a bound, raising the gyro floor
    for step in BLENDING_GROUP.steps:
        if step.lower_with_mag is None:
            continue
        if not step.admits(toggled.value(BLENDING_GROUP.name, step.name), toggled):
            return False
    return True


def _flag_neighbors(params: PredictionParams) -> list[PredictionParams]:
    """Return one candidate per boolean flag with that flag inverted."""
    candidates: list[PredictionParams] = []
    for flag_name in FLAG_NAMES:
        toggled: PredictionParams = params.toggled(flag_name)
        if _flag_admits(toggled):
            candidates.append(toggled)
    return candidates


def generate_neighbors(params: PredictionParams) -> tuple[PredictionParams, ...]:
    """Return every one-step perturbation of a parameter set.

    Order is deterministic: the always-active fields first, then the flags,
    then the camera, gyroscope and unscented filter groups. The input is
    never modified.
    """
    candidates: list[PredictionParams] = _group_neighbors(params, BLENDING_GROUP)
    candidates.extend(_flag_neighbors(params))
    for group in PARAM_GROUPS:
        if group is BLENDING_GROUP:
            continue
        candidates.extend(_group_neighbors(params, group))
    return tuple(candidates)
