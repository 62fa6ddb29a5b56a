################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Training corpus and random-restart seed queue."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

import numpy as np

from trajectory_tuning.params.prediction_params import PredictionParams
from trajectory_tuning.tuning_types.sensor_sample import SensorSample


@dataclass(frozen=True)
class CorpusEntry:
    """One recorded drive used for calibration.

    Attributes:
        expected_loop_count: Number of full loops physically driven
        samples: Recorded sensor samples in time order
        ground_truth_m: Optional Nx3 array of true positions in meters
        name: Human-readable label, usually the source file name
    """

    expected_loop_count: int
    samples: tuple[SensorSample, ...]
    ground_truth_m: np.ndarray | None = None
    name: str = ""

    def __post_init__(self) -> None:
        """Validate entry fields."""
        if isinstance(self.expected_loop_count, bool) or not isinstance(
            self.expected_loop_count, int
        ):
            raise ValueError("expected_loop_count must be an int")
        if self.expected_loop_count < 0:
            raise ValueError("expected_loop_count must be non-negative")
        object.__setattr__(self, "samples", tuple(self.samples))
        if self.ground_truth_m is not None:
            ground_truth: np.ndarray = np.asarray(self.ground_truth_m, dtype=np.float64)
            if ground_truth.ndim != 2 or ground_truth.shape[1] != 3:
                raise ValueError("ground_truth_m must have shape (N, 3)")
            object.__setattr__(self, "ground_truth_m", ground_truth)

    def has_ground_truth(self) -> bool:
        """Return True when a true trajectory accompanies the entry."""
        return self.ground_truth_m is not None


@dataclass(frozen=True)
class TrainingCorpus:
    """Ordered, read-only collection of calibration entries."""

    entries: tuple[CorpusEntry, ...] = ()

    def __post_init__(self) -> None:
        """Freeze the entry sequence."""
        object.__setattr__(self, "entries", tuple(self.entries))

    def with_entry(self, entry: CorpusEntry) -> TrainingCorpus:
        """Return a corpus with one more entry appended."""
        return TrainingCorpus(entries=self.entries + (entry,))

    def is_empty(self) -> bool:
        """Return True if the corpus holds no entries."""
        return not self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[CorpusEntry]:
        return iter(self.entries)

    def __getitem__(self, index: int) -> CorpusEntry:
        return self.entries[index]


class SeedQueue:
    """Append-only sequence of initial parameter sets for random restarts."""

    def __init__(self, seeds: list[PredictionParams] | None = None) -> None:
        self._seeds: list[PredictionParams] = list(seeds or [])

    def append(self, seed: PredictionParams) -> None:
        """Add a seed to the end of the queue."""
        self._seeds.append(seed)

    def seed(self, index: int) -> PredictionParams:
        """Return the seed at a queue position."""
        if index < 0 or index >= len(self._seeds):
            raise IndexError(f"No seed at index {index}")
        return self._seeds[index]

    def has_seed(self, index: int) -> bool:
        """Return True if a seed exists at the queue position."""
        return 0 <= index < len(self._seeds)

    def __len__(self) -> int:
        return len(self._seeds)

    def __iter__(self) -> Iterator[PredictionParams]:
        return iter(tuple(self._seeds))
