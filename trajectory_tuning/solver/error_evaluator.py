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
Trajectory error objective for parameter tuning

Each corpus entry is replayed through the trajectory predictor. Without
ground truth the error of an entry is its loop-closure distance, the gap
between the predicted start and end position of a drive that physically
returned to its start. The scalar objective is the mean over entries.

A parameter set whose predicted heading turns through more loops than were
physically driven is rejected as a whole with an infinite error.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

from trajectory_tuning.params.prediction_params import PredictionParams
from trajectory_tuning.prediction.predictor import PredictionFailure
from trajectory_tuning.prediction.predictor import TrajectoryPredictor
from trajectory_tuning.tuning_types.corpus import CorpusEntry
from trajectory_tuning.tuning_types.corpus import TrainingCorpus
from trajectory_tuning.tuning_types.pose import Pose
from trajectory_tuning.tuning_types.pose import heading_change
from trajectory_tuning.tuning_types.pose import loop_closure_error


_LOG: logging.Logger = logging.getLogger(__name__)

# Error reported for rejected parameter sets
IMPLAUSIBLE_ERROR: float = math.inf

# Units: rad. Meaning: heading offset of the first recorded drive, whose
# reference heading convention is rotated by a quarter turn
FIRST_ENTRY_HEADING_OFFSET_RAD: float = math.pi / 2.0


class EmptyCorpusError(Exception):
    """Raised when an evaluation is requested over an empty corpus."""


class UnsupportedComparisonError(Exception):
    """Raised when an entry requires comparison against ground truth."""


class ImplausibleParameterError(Exception):
    """Raised when predicted heading turns through too many loops."""


@dataclass(frozen=True)
class DetailedErrors:
    """Per-entry errors in corpus order.

    Attributes:
        positional_errors: Loop-closure distance per entry in meters
        orientation_errors: Norm of the attitude difference between first and
            last pose per entry in radians
    """

    positional_errors: tuple[float, ...]
    orientation_errors: tuple[float, ...]


def tolerable_heading_change(expected_loop_count: int) -> float:
    """Return the largest plausible heading change for a number of loops."""
    return expected_loop_count * 2.0 * math.pi + math.pi


def _require_corpus(corpus: TrainingCorpus) -> None:
    if corpus.is_empty():
        raise EmptyCorpusError("Training corpus has no entries")


def _check_heading_drift(
    index: int, entry: CorpusEntry, poses: tuple[Pose, ...]
) -> None:
    tolerable_rad: float = tolerable_heading_change(entry.expected_loop_count)
    change_rad: float = heading_change(poses)
    if change_rad > tolerable_rad:
        raise ImplausibleParameterError(
            f"Entry {index} ({entry.name or 'unnamed'}) turned {change_rad:.3f} rad, "
            f"tolerable for {entry.expected_loop_count} loops is "
            f"{tolerable_rad:.3f} rad"
        )


def _predict_corpus(
    corpus: TrainingCorpus,
    params: PredictionParams,
    predictor: TrajectoryPredictor,
    reject_implausible: bool,
) -> list[tuple[Pose, ...]]:
    """Predict every entry, checking drift as soon as each entry finishes."""
    trajectories: list[tuple[Pose, ...]] = []
    for index, entry in enumerate(corpus):
        poses: tuple[Pose, ...] = predictor.predict(entry.samples, params)
        if not poses:
            raise PredictionFailure(f"Entry {index} produced no poses")
        if reject_implausible:
            _check_heading_drift(index, entry, poses)
        trajectories.append(poses)
    return trajectories


def evaluate(
    corpus: TrainingCorpus,
    params: PredictionParams,
    predictor: TrajectoryPredictor,
    reject_implausible: bool = True,
) -> float:
    """Return the mean loop-closure error of a parameter set.

    Returns IMPLAUSIBLE_ERROR if reject_implausible is set and any entry turns
    through more than expected_loop_count * 2 pi + pi, even when another entry
    carries ground truth. Otherwise an entry with ground truth raises
    UnsupportedComparisonError. PredictionFailure from the predictor
    propagates to the caller.
    """
    _require_corpus(corpus)
    params.validate()

    try:
        trajectories: list[tuple[Pose, ...]] = _predict_corpus(
            corpus, params, predictor, reject_implausible
        )
    except ImplausibleParameterError as exc:
        _LOG.debug("Rejecting parameters: %s", exc)
        return IMPLAUSIBLE_ERROR

    for index, entry in enumerate(corpus):
        if entry.has_ground_truth():
            raise UnsupportedComparisonError(
                f"Entry {index} ({entry.name or 'unnamed'}) has ground truth, "
                "comparison against ground truth is not implemented"
            )

    errors: list[float] = [loop_closure_error(poses) for poses in trajectories]
    return math.fsum(errors) / len(errors)


def evaluate_detailed(
    corpus: TrainingCorpus,
    params: PredictionParams,
    predictor: TrajectoryPredictor,
    reject_implausible: bool = True,
) -> DetailedErrors:
    """Return positional and orientation errors for every entry.

    The last heading of the first entry is offset by -pi/2 before comparing,
    to correct the reference convention of the first recorded drive.

    Raises ImplausibleParameterError instead of returning a sentinel, since a
    rejected parameter set has no per-entry errors.
    """
    _require_corpus(corpus)
    params.validate()

    trajectories: list[tuple[Pose, ...]] = _predict_corpus(
        corpus, params, predictor, reject_implausible
    )

    positional: list[float] = []
    orientation: list[float] = []
    for index, poses in enumerate(trajectories):
        positional.append(loop_closure_error(poses))
        offset_rad: float = FIRST_ENTRY_HEADING_OFFSET_RAD if index == 0 else 0.0
        end_attitude: np.ndarray = poses[-1].attitude()
        end_attitude[0] -= offset_rad
        orientation.append(float(np.linalg.norm(poses[0].attitude() - end_attitude)))

    return DetailedErrors(
        positional_errors=tuple(positional),
        orientation_errors=tuple(orientation),
    )


class ErrorEvaluator:
    """Objective bound to a corpus and a predictor."""

    def __init__(
        self,
        corpus: TrainingCorpus,
        predictor: TrajectoryPredictor,
        *,
        reject_implausible: bool = True,
    ) -> None:
        _require_corpus(corpus)
        self._corpus: TrainingCorpus = corpus
        self._predictor: TrajectoryPredictor = predictor
        self._reject_implausible: bool = reject_implausible

    @property
    def corpus(self) -> TrainingCorpus:
        return self._corpus

    def evaluate(self, params: PredictionParams) -> float:
        """Return the mean error of a parameter set."""
        return evaluate(
            self._corpus, params, self._predictor, self._reject_implausible
        )

    def evaluate_detailed(self, params: PredictionParams) -> DetailedErrors:
        """Return per-entry errors of a parameter set."""
        return evaluate_detailed(
            self._corpus, params, self._predictor, self._reject_implausible
        )
