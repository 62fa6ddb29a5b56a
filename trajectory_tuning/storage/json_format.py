################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""JSON schema utilities for recorded sensor logs and ground truth."""

from __future__ import annotations

import json
from typing import Any

import numpy as np

from trajectory_tuning.tuning_types.sensor_sample import SensorSample


# Version of the sensor log layout
LOG_FORMAT_VERSION: int = 1

_REQUIRED_SAMPLE_KEYS: set[str] = {
    "t_s",
    "speed_mps",
    "steering_angle_rad",
    "gyro_rads",
}
_OPTIONAL_SAMPLE_KEYS: set[str] = {
    "mag_heading_rad",
    "camera_heading_rad",
    "camera_speed_mps",
    "camera_confidence",
    "pitch_rad",
    "roll_rad",
}


class TuningJsonError(Exception):
    """Raised when a sensor log or ground-truth document is invalid."""


def sample_from_dict(data: object, index: int) -> SensorSample:
    """Parse one sensor sample from a dictionary."""
    scope: str = f"samples[{index}]"
    if not isinstance(data, dict):
        raise TuningJsonError(f"{scope} must be an object")
    missing: set[str] = {key for key in _REQUIRED_SAMPLE_KEYS if key not in data}
    if missing:
        raise TuningJsonError(f"Missing keys in {scope}: {', '.join(sorted(missing))}")
    unknown: set[str] = {
        key
        for key in data.keys()
        if key not in _REQUIRED_SAMPLE_KEYS and key not in _OPTIONAL_SAMPLE_KEYS
    }
    if unknown:
        raise TuningJsonError(
            f"Unexpected keys in {scope}: {', '.join(sorted(unknown))}"
        )
    try:
        return SensorSample(**data)
    except (TypeError, ValueError) as exc:
        raise TuningJsonError(f"{scope}: {exc}") from exc


def loads_sensor_log(text: str) -> tuple[SensorSample, ...]:
    """Parse a sensor log document."""
    root: dict[str, Any] = _load_object(text)
    if root.get("format_version") != LOG_FORMAT_VERSION:
        raise TuningJsonError(f"format_version must be {LOG_FORMAT_VERSION}")
    samples_data: Any = root.get("samples")
    if not isinstance(samples_data, list):
        raise TuningJsonError("samples must be a list")
    if not samples_data:
        raise TuningJsonError("Sensor log contains no samples")
    return tuple(
        sample_from_dict(item, index) for index, item in enumerate(samples_data)
    )


def loads_ground_truth(text: str) -> np.ndarray:
    """Parse a ground-truth trajectory as an Nx3 array of positions."""
    root: dict[str, Any] = _load_object(text)
    if "positions_m" not in root:
        raise TuningJsonError("Missing keys in ground truth: positions_m")
    try:
        positions: np.ndarray = np.asarray(root["positions_m"], dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise TuningJsonError("positions_m must be numeric") from exc
    if positions.ndim != 2 or positions.shape[1] != 3 or positions.shape[0] == 0:
        raise TuningJsonError("positions_m must have shape (N, 3) with N > 0")
    if not np.all(np.isfinite(positions)):
        raise TuningJsonError("positions_m must contain finite values")
    return positions


def _load_object(text: str) -> dict[str, Any]:
    try:
        loaded: Any = json.loads(text)
    except json.JSONDecodeError as exc:
        raise TuningJsonError(f"Malformed JSON: {exc}") from exc
    if not isinstance(loaded, dict):
        raise TuningJsonError("JSON root must be an object")
    return loaded
