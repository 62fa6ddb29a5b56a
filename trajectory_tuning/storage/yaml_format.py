################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""YAML schema utilities for persisted prediction parameters."""

from __future__ import annotations

import numbers
from typing import Any
from typing import cast

import yaml

from trajectory_tuning.params.prediction_params import FLAG_NAMES
from trajectory_tuning.params.prediction_params import PARAM_GROUPS
from trajectory_tuning.params.prediction_params import BlendingParams
from trajectory_tuning.params.prediction_params import ModeFlags
from trajectory_tuning.params.prediction_params import NoiseFilterParams
from trajectory_tuning.params.prediction_params import PredictionParams
from trajectory_tuning.params.prediction_params import PredictionParamsError
from trajectory_tuning.params.prediction_params import UkfParams


# Version of the parameter file layout
FORMAT_VERSION: int = 1

_ROOT_KEYS: set[str] = {"format_version", "flags"} | {
    group.name for group in PARAM_GROUPS
}
_OPTIONAL_ROOT_KEYS: set[str] = {"mean_error"}


class TuningYamlError(Exception):
    """Raised when the parameter YAML schema is invalid."""


def params_to_dict(
    params: PredictionParams, mean_error: float | None = None
) -> dict[str, object]:
    """Convert parameters to a YAML-safe dictionary."""
    data: dict[str, object] = {"format_version": FORMAT_VERSION}
    if mean_error is not None:
        data["mean_error"] = float(mean_error)
    data["flags"] = {name: bool(getattr(params.flags, name)) for name in FLAG_NAMES}
    for group in PARAM_GROUPS:
        data[group.name] = {
            step.name: params.value(group.name, step.name) for step in group.steps
        }
    return data


def params_from_dict(data: dict[str, object]) -> PredictionParams:
    """Parse and validate parameters from a dictionary."""
    if not isinstance(data, dict):
        raise TuningYamlError("YAML root must be a mapping")
    _require_keys("root", data, _ROOT_KEYS, optional=_OPTIONAL_ROOT_KEYS)

    version: int = _require_int(data["format_version"], "format_version")
    if version != FORMAT_VERSION:
        raise TuningYamlError(f"format_version must be {FORMAT_VERSION}")
    if "mean_error" in data:
        _require_float(data["mean_error"], "mean_error")

    flags_data: dict[str, object] = _require_mapping(data["flags"], "flags")
    _require_keys("flags", flags_data, set(FLAG_NAMES))
    flags: ModeFlags = ModeFlags(
        **{
            name: _require_bool(flags_data[name], f"flags.{name}")
            for name in FLAG_NAMES
        }
    )

    groups: dict[str, dict[str, float]] = {}
    for group in PARAM_GROUPS:
        group_data: dict[str, object] = _require_mapping(data[group.name], group.name)
        names: set[str] = {step.name for step in group.steps}
        _require_keys(group.name, group_data, names)
        groups[group.name] = {
            name: _require_float(group_data[name], f"{group.name}.{name}")
            for name in names
        }

    params: PredictionParams = PredictionParams(
        blending=BlendingParams(**groups["blending"]),
        flags=flags,
        camera_filter=NoiseFilterParams(**groups["camera_filter"]),
        gyro_filter=NoiseFilterParams(**groups["gyro_filter"]),
        ukf_filter=UkfParams(**groups["ukf_filter"]),
    )
    try:
        params.validate()
    except PredictionParamsError as exc:
        raise TuningYamlError(str(exc)) from exc
    return params


def dumps_params_yaml(params: PredictionParams, mean_error: float | None = None) -> str:
    """Serialize parameters to deterministic YAML."""
    data: dict[str, object] = params_to_dict(params, mean_error)
    safe_dump: Any = cast(Any, yaml.safe_dump)
    return safe_dump(
        data,
        sort_keys=False,
        indent=2,
        default_flow_style=False,
    )


def loads_params_yaml(text: str) -> PredictionParams:
    """Parse parameters from YAML text."""
    try:
        loaded: Any = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise TuningYamlError("Malformed YAML") from exc
    if not isinstance(loaded, dict):
        raise TuningYamlError("YAML root must be a mapping")
    return params_from_dict(loaded)


def _require_keys(
    scope: str,
    data: dict[str, object],
    required: set[str],
    optional: set[str] | None = None,
) -> None:
    """Ensure a mapping has the required keys and no unknown ones."""
    allowed: set[str] = required | (optional or set())
    unknown: set[str] = {key for key in data.keys() if key not in allowed}
    if unknown:
        raise TuningYamlError(
            f"Unexpected keys in {scope}: {', '.join(sorted(unknown))}"
        )
    missing: set[str] = {key for key in required if key not in data}
    if missing:
        raise TuningYamlError(f"Missing keys in {scope}: {', '.join(sorted(missing))}")


def _require_mapping(value: object, name: str) -> dict[str, object]:
    """Ensure the value is a dictionary."""
    if not isinstance(value, dict):
        raise TuningYamlError(f"{name} must be a mapping")
    return value


def _require_bool(value: object, name: str) -> bool:
    """Ensure the value is a boolean."""
    if not isinstance(value, bool):
        raise TuningYamlError(f"{name} must be a boolean")
    return value


def _require_int(value: object, name: str) -> int:
    """Ensure the value is an integer."""
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise TuningYamlError(f"{name} must be an integer")
    return int(value)


def _require_float(value: object, name: str) -> float:
    """Ensure the value is a float."""
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise TuningYamlError(f"{name} must be a float")
    return float(value)
