################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Structured configuration schema for parameter tuning."""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import fields
from dataclasses import replace
from typing import Any


# Maximum number of committed improvement steps per search chain
SEARCH_MAX_ITERATIONS: int = 1000
# Stop a chain once its mean error is at or below this value, in meters
SEARCH_MIN_ERROR: float = 1.0
# Neighbor generation attempts without improvement before a local minimum
SEARCH_MAX_NEIGHBOR_ATTEMPTS: int = 100

# Restart from queued seeds after each finished chain
RESTART_USE_RANDOM_RESTART: bool = False

# Reject parameter sets that turn through implausibly many loops
EVALUATION_REJECT_IMPLAUSIBLE: bool = True
# Number of threads evaluating neighbors concurrently
EVALUATION_WORKERS: int = 1

# Persist the result of every finished chain
SAVE_PERSIST_ON_LOCAL_MINIMUM: bool = False
# Directory receiving persisted parameter sets
SAVE_OUTPUT_DIR: str = "calibrated_params"
# Use atomic write for persistence
SAVE_ATOMIC_WRITE: bool = True


class TuningParamsError(Exception):
    """Raised when tuning parameter validation fails."""


def _require_int(value: Any, name: str) -> None:
    """Require an integer that is not a bool."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TuningParamsError(f"{name} must be an int")


def _require_positive_int(value: Any, name: str) -> None:
    """Require a positive integer value."""
    _require_int(value, name)
    if value <= 0:
        raise TuningParamsError(f"{name} must be positive")


def _require_non_negative(value: Any, name: str) -> None:
    """Require a non-negative number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TuningParamsError(f"{name} must be a number")
    if value < 0.0:
        raise TuningParamsError(f"{name} must be non-negative")


def _require_bool(value: Any, name: str) -> None:
    """Require a bool value."""
    if not isinstance(value, bool):
        raise TuningParamsError(f"{name} must be a bool")


@dataclass(frozen=True)
class SearchParams:
    """Termination limits of the hill-climbing search."""

    # Maximum committed improvement steps per chain
    max_iterations: int = SEARCH_MAX_ITERATIONS
    # Convergence threshold on the mean error
    min_error: float = SEARCH_MIN_ERROR
    # Attempts without improvement before declaring a local minimum
    max_neighbor_attempts: int = SEARCH_MAX_NEIGHBOR_ATTEMPTS


@dataclass(frozen=True)
class RestartParams:
    """Random-restart chaining policy."""

    # Restart from queued seeds after each finished chain
    use_random_restart: bool = RESTART_USE_RANDOM_RESTART


@dataclass(frozen=True)
class EvaluationParams:
    """Objective evaluation options."""

    # Reject parameter sets with implausible heading drift
    reject_implausible: bool = EVALUATION_REJECT_IMPLAUSIBLE
    # Number of concurrent neighbor evaluations
    workers: int = EVALUATION_WORKERS


@dataclass(frozen=True)
class SaveParams:
    """Persistence parameters."""

    # Persist the result of every finished chain
    persist_on_local_minimum: bool = SAVE_PERSIST_ON_LOCAL_MINIMUM
    # Output directory for persisted parameter sets
    output_dir: str = SAVE_OUTPUT_DIR
    # Use atomic write for persistence
    atomic_write: bool = SAVE_ATOMIC_WRITE


@dataclass(frozen=True)
class TuningParams:
    """Complete configuration tree for parameter tuning."""

    search: SearchParams
    restart: RestartParams
    evaluation: EvaluationParams
    save: SaveParams

    @classmethod
    def defaults(cls) -> TuningParams:
        """Return the default tuning parameter tree."""
        return cls(
            search=SearchParams(),
            restart=RestartParams(),
            evaluation=EvaluationParams(),
            save=SaveParams(),
        )

    def validate(self) -> None:
        """Validate parameter invariants and constraints."""
        _require_positive_int(self.search.max_iterations, "search.max_iterations")
        _require_non_negative(self.search.min_error, "search.min_error")
        _require_positive_int(
            self.search.max_neighbor_attempts, "search.max_neighbor_attempts"
        )

        _require_bool(self.restart.use_random_restart, "restart.use_random_restart")

        _require_bool(
            self.evaluation.reject_implausible, "evaluation.reject_implausible"
        )
        _require_positive_int(self.evaluation.workers, "evaluation.workers")

        _require_bool(
            self.save.persist_on_local_minimum, "save.persist_on_local_minimum"
        )
        if not self.save.output_dir:
            raise TuningParamsError("save.output_dir must be set")
        _require_bool(self.save.atomic_write, "save.atomic_write")

    def replace(self, **namespace_overrides: Any) -> TuningParams:
        """Return a modified copy of the parameters."""
        return replace(self, **namespace_overrides)

    def as_nested_dict(self) -> dict[str, Any]:
        """Return a nested dict representation for debugging."""
        return {
            namespace.name: {
                item.name: getattr(getattr(self, namespace.name), item.name)
                for item in fields(getattr(self, namespace.name))
            }
            for namespace in fields(self)
        }
