################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""High-level configuration wrapper for parameter tuning."""

from __future__ import annotations

from dataclasses import dataclass

from .tuning_params import TuningParams
from .tuning_params import TuningParamsError


class ConfigurationError(Exception):
    """Raised when a tuning run is configured inconsistently."""


@dataclass(frozen=True)
class TuningConfig:
    """Convenience wrapper around tuning parameters."""

    params: TuningParams

    def __init__(self, params: TuningParams) -> None:
        """Initialize the configuration wrapper and validate."""
        object.__setattr__(self, "params", params)
        self.validate()

    def validate(self) -> None:
        """Validate parameter invariants."""
        try:
            self.params.validate()
        except TuningParamsError as exc:
            raise ConfigurationError(str(exc)) from exc

    @classmethod
    def defaults(cls) -> TuningConfig:
        """Return a configuration with default parameters."""
        return cls(TuningParams.defaults())

    def max_iterations(self) -> int:
        """Return the outer iteration cap per chain."""
        return self.params.search.max_iterations

    def min_error(self) -> float:
        """Return the convergence threshold."""
        return float(self.params.search.min_error)

    def max_neighbor_attempts(self) -> int:
        """Return the attempts allowed before a local minimum."""
        return self.params.search.max_neighbor_attempts

    def use_random_restart(self) -> bool:
        """Return True if chains restart from queued seeds."""
        return self.params.restart.use_random_restart

    def persist_on_local_minimum(self) -> bool:
        """Return True if finished chains are persisted."""
        return self.params.save.persist_on_local_minimum

    def reject_implausible(self) -> bool:
        """Return True if implausible heading drift is rejected."""
        return self.params.evaluation.reject_implausible

    def workers(self) -> int:
        """Return the number of concurrent neighbor evaluations."""
        return self.params.evaluation.workers
