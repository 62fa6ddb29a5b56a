################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Loading recorded drives and loading or saving parameter sets."""

from __future__ import annotations

import os
from pathlib import Path

import numpy as np

from trajectory_tuning.params.prediction_params import PredictionParams
from trajectory_tuning.storage.json_format import TuningJsonError
from trajectory_tuning.storage.json_format import loads_ground_truth
from trajectory_tuning.storage.json_format import loads_sensor_log
from trajectory_tuning.storage.yaml_format import TuningYamlError
from trajectory_tuning.storage.yaml_format import dumps_params_yaml
from trajectory_tuning.storage.yaml_format import loads_params_yaml
from trajectory_tuning.tuning_types.corpus import CorpusEntry
from trajectory_tuning.tuning_types.sensor_sample import SensorSample


# File extension of persisted parameter sets
PARAMS_SUFFIX: str = ".yaml"


class TuningPersistenceError(Exception):
    """Raised when loading or saving tuning files fails."""


def is_yaml_path(path: str | os.PathLike[str]) -> bool:
    """Return True if the path has a YAML extension."""
    suffix: str = Path(os.fspath(path)).suffix.lower()
    return suffix in {".yaml", ".yml"}


def params_path(directory: str | os.PathLike[str], name: str) -> Path:
    """Return the file path for a named parameter set."""
    if not name:
        raise TuningPersistenceError("Parameter set name must be set")
    if os.sep in name or (os.altsep is not None and os.altsep in name):
        raise TuningPersistenceError("Parameter set name must not contain a path")
    return Path(os.fspath(directory)) / f"{name}{PARAMS_SUFFIX}"


def save_params(
    params: PredictionParams,
    name: str,
    directory: str | os.PathLike[str],
    *,
    atomic_write: bool = True,
    mean_error: float | None = None,
) -> Path:
    """Save a parameter set as <directory>/<name>.yaml and return the path."""
    path_obj: Path = params_path(directory, name)
    try:
        path_obj.parent.mkdir(parents=True, exist_ok=True)
        text: str = dumps_params_yaml(params, mean_error)
        if atomic_write:
            tmp_name: str = f".{path_obj.name}.tmp.{os.getpid()}"
            tmp_path: Path = path_obj.with_name(tmp_name)
            with tmp_path.open("w", encoding="utf-8") as handle:
                handle.write(text)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, path_obj)
        else:
            path_obj.write_text(text, encoding="utf-8")
    except (OSError, TuningYamlError) as exc:
        raise TuningPersistenceError(
            f"Failed to save parameters to {path_obj}"
        ) from exc
    return path_obj


def load_params(path: str | os.PathLike[str]) -> PredictionParams:
    """Load a parameter set from a YAML file."""
    if not is_yaml_path(path):
        raise TuningPersistenceError("Path must end with .yaml or .yml")

    path_obj: Path = Path(os.fspath(path))
    try:
        text: str = path_obj.read_text(encoding="utf-8")
        return loads_params_yaml(text)
    except (OSError, TuningYamlError) as exc:
        raise TuningPersistenceError(
            f"Failed to load parameters from {path_obj}"
        ) from exc


def load_corpus_entry(
    path: str | os.PathLike[str],
    expected_loop_count: int,
    ground_truth_path: str | os.PathLike[str] | None = None,
) -> CorpusEntry:
    """Load a recorded drive and its optional ground truth."""
    path_obj: Path = Path(os.fspath(path))
    try:
        samples: tuple[SensorSample, ...] = loads_sensor_log(
            path_obj.read_text(encoding="utf-8")
        )
        ground_truth: np.ndarray | None = None
        if ground_truth_path is not None:
            ground_truth = loads_ground_truth(
                Path(os.fspath(ground_truth_path)).read_text(encoding="utf-8")
            )
        return CorpusEntry(
            expected_loop_count=expected_loop_count,
            samples=samples,
            ground_truth_m=ground_truth,
            name=path_obj.name,
        )
    except (OSError, TuningJsonError, ValueError) as exc:
        raise TuningPersistenceError(
            f"Failed to load sensor log from {path_obj}"
        ) from exc
