################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Tests for sensor log and ground-truth JSON documents."""

from __future__ import annotations

import json

import numpy as np
import pytest

from trajectory_tuning.storage.json_format import LOG_FORMAT_VERSION
from trajectory_tuning.storage.json_format import TuningJsonError
from trajectory_tuning.storage.json_format import loads_ground_truth
from trajectory_tuning.storage.json_format import loads_sensor_log
from trajectory_tuning.tuning_types.sensor_sample import SensorSample


def _build_log(*samples: dict[str, object]) -> str:
    return json.dumps({"format_version": LOG_FORMAT_VERSION, "samples": samples})


def _sample_dict(t_s: float, **extra: object) -> dict[str, object]:
    data: dict[str, object] = {
        "t_s": t_s,
        "speed_mps": 1.5,
        "steering_angle_rad": 0.1,
        "gyro_rads": [0.0, 0.0, 0.2],
    }
    data.update(extra)
    return data


def test_loads_minimal_samples() -> None:
    """Optional channels default to absent or zero."""
    samples: tuple[SensorSample, ...] = loads_sensor_log(
        _build_log(_sample_dict(0.0), _sample_dict(0.1))
    )

    assert len(samples) == 2
    assert samples[1].t_s == 0.1
    assert samples[0].yaw_rate_rads == 0.2
    assert samples[0].mag_heading_rad is None
    assert not samples[0].has_camera()


def test_loads_optional_channels() -> None:
    """Camera and magnetometer channels are parsed when present."""
    samples: tuple[SensorSample, ...] = loads_sensor_log(
        _build_log(
            _sample_dict(
                0.0,
                mag_heading_rad=0.4,
                camera_heading_rad=0.5,
                camera_speed_mps=1.4,
                camera_confidence=0.8,
            )
        )
    )

    assert samples[0].mag_heading_rad == 0.4
    assert samples[0].camera_confidence == 0.8
    assert samples[0].has_camera()


@pytest.mark.parametrize(
    "text",
    [
        "not json",
        "[]",
        json.dumps({"format_version": 2, "samples": [_sample_dict(0.0)]}),
        json.dumps({"format_version": LOG_FORMAT_VERSION, "samples": []}),
        json.dumps({"format_version": LOG_FORMAT_VERSION, "samples": {}}),
    ],
)
def test_rejects_invalid_documents(text: str) -> None:
    """Malformed logs, wrong versions and empty logs are rejected."""
    with pytest.raises(TuningJsonError):
        loads_sensor_log(text)


def test_rejects_invalid_samples() -> None:
    """Missing, unknown and out-of-range sample fields are rejected."""
    missing: dict[str, object] = _sample_dict(0.0)
    del missing["gyro_rads"]

    with pytest.raises(TuningJsonError):
        loads_sensor_log(_build_log(missing))
    with pytest.raises(TuningJsonError):
        loads_sensor_log(_build_log(_sample_dict(0.0, lidar=1.0)))
    with pytest.raises(TuningJsonError):
        loads_sensor_log(_build_log(_sample_dict(0.0, camera_confidence=1.5)))
    with pytest.raises(TuningJsonError):
        loads_sensor_log(_build_log(_sample_dict(0.0, gyro_rads=[0.0, 1.0])))


def test_loads_ground_truth() -> None:
    """Ground truth is an Nx3 array of positions."""
    positions: np.ndarray = loads_ground_truth(
        json.dumps({"positions_m": [[0.0, 0.0, 0.0], [1.0, 2.0, 0.0]]})
    )

    assert positions.shape == (2, 3)
    np.testing.assert_allclose(positions[1], [1.0, 2.0, 0.0])


def test_rejects_invalid_ground_truth() -> None:
    """Ground truth with the wrong shape or missing data is rejected."""
    with pytest.raises(TuningJsonError):
        loads_ground_truth(json.dumps({}))
    with pytest.raises(TuningJsonError):
        loads_ground_truth(json.dumps({"positions_m": [[0.0, 1.0]]}))
    with pytest.raises(TuningJsonError):
        loads_ground_truth(json.dumps({"positions_m": []}))
