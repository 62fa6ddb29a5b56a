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
Hill-climbing search over prediction parameters

A search chain starts from one parameter set and repeatedly moves to the
best single-field neighbor while that neighbor strictly lowers the error.
A chain ends when the error reaches the configured threshold, when the
iteration cap is hit, or when no neighbor improves within the allowed number
of neighbor-generation attempts (a local minimum).

With random restart enabled, a new chain starts from the next queued seed
after each finished chain. Chains are run one after another in an explicit
loop and share no mutable state.

Neighbor errors within one step may be computed on a thread pool. Results are
folded in candidate order, so the outcome does not depend on completion order.
"""

from __future__ import annotations

import enum
import logging
import math
import threading
from concurrent.futures import Executor
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable
from typing import Sequence

from trajectory_tuning.config.tuning_config import ConfigurationError
from trajectory_tuning.config.tuning_config import TuningConfig
from trajectory_tuning.params.prediction_params import PredictionParams
from trajectory_tuning.params.prediction_params import PredictionParamsError
from trajectory_tuning.prediction.predictor import PredictionFailure
from trajectory_tuning.prediction.predictor import TrajectoryPredictor
from trajectory_tuning.solver.error_evaluator import IMPLAUSIBLE_ERROR
from trajectory_tuning.solver.error_evaluator import ErrorEvaluator
from trajectory_tuning.solver.neighbors import generate_neighbors
from trajectory_tuning.storage.persistence import TuningPersistenceError
from trajectory_tuning.storage.persistence import save_params
from trajectory_tuning.tuning_types.corpus import SeedQueue
from trajectory_tuning.tuning_types.corpus import TrainingCorpus


_LOG: logging.Logger = logging.getLogger(__name__)

# Name prefix of parameter sets persisted at the end of a chain
PERSIST_NAME_PREFIX: str = "local_minimum"

# Objective mapping a parameter set to its mean error
Objective = Callable[[PredictionParams], float]

# Sink receiving a parameter set, a file name stem and the set's mean error
ParamsSink = Callable[[PredictionParams, str, float], None]


class ChainOutcome(enum.Enum):
    """
    Enumerates how a search chain ended

    Attributes:
        CONVERGED: Error reached the configured threshold
        ITERATION_LIMIT: Committed step cap was reached
        LOCAL_MINIMUM: No neighbor improved within the attempt budget
        CANCELLED: The caller requested cancellation
    """

    CONVERGED = "converged"
    ITERATION_LIMIT = "iteration_limit"
    LOCAL_MINIMUM = "local_minimum"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ChainResult:
    """Result of one search chain.

    Attributes:
        seed_index: Index of the starting seed, or None when the chain started
            from the default parameters
        params: Parameters at the end of the chain
        error: Mean error of the final parameters
        outcome: How the chain ended
        iterations: Number of committed improvement steps
        evaluations: Number of objective evaluations performed
        error_history: Error after the start and after every committed step,
            non-increasing
    """

    seed_index: int | None
    params: PredictionParams
    error: float
    outcome: ChainOutcome
    iterations: int
    evaluations: int
    error_history: tuple[float, ...]


@dataclass(frozen=True)
class TuningReport:
    """Results of all chains in execution order."""

    chains: tuple[ChainResult, ...]

    @property
    def cancelled(self) -> bool:
        """Return True if the search stopped on a cancellation request."""
        return bool(self.chains) and self.chains[-1].outcome is ChainOutcome.CANCELLED

    @property
    def final(self) -> ChainResult:
        """Return the result of the last chain."""
        if not self.chains:
            raise ValueError("No chain was run")
        return self.chains[-1]

    def best(self) -> ChainResult:
        """Return the chain with the lowest error, earliest on ties."""
        if not self.chains:
            raise ValueError("No chain was run")
        best: ChainResult = self.chains[0]
        for chain in self.chains[1:]:
            if chain.error < best.error:
                best = chain
        return best


@dataclass
class _StepResult:
    """Outcome of one Improve step."""

    params: PredictionParams | None
    error: float
    evaluations: int
    cancelled: bool = False


class HillClimbOptimizer:
    """Steepest-descent search with local-minimum detection and restarts."""

    def __init__(
        self,
        objective: Objective,
        config: TuningConfig,
        *,
        seeds: SeedQueue | None = None,
        persist: ParamsSink | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        """Create the optimizer, failing fast on inconsistent configuration."""
        self._objective: Objective = objective
        self._config: TuningConfig = config
        self._seeds: SeedQueue = seeds if seeds is not None else SeedQueue()
        self._persist: ParamsSink | None = persist
        self._cancel_event: threading.Event = cancel_event or threading.Event()

        if config.use_random_restart() and len(self._seeds) == 0:
            raise ConfigurationError("Random restart requires at least one seed")
        if config.persist_on_local_minimum() and persist is None:
            raise ConfigurationError("Persisting chain results requires a sink")
        for index, seed in enumerate(self._seeds):
            try:
                seed.validate()
            except PredictionParamsError as exc:
                raise ConfigurationError(f"Seed {index} is invalid: {exc}") from exc

    def cancel(self) -> None:
        """Request the search to stop at the next evaluation boundary."""
        self._cancel_event.set()

    def run(self) -> TuningReport:
        """Run all search chains and return their results."""
        workers: int = self._config.workers()
        if workers > 1:
            with ThreadPoolExecutor(
                max_workers=workers, thread_name_prefix="tuning"
            ) as executor:
                return self._run_chains(executor)
        return self._run_chains(None)

    def _run_chains(self, executor: Executor | None) -> TuningReport:
        chains: list[ChainResult] = []
        seed_index: int | None = 0 if self._config.use_random_restart() else None

        while True:
            start: PredictionParams
            if seed_index is None:
                start = PredictionParams.defaults()
            else:
                start = self._seeds.seed(seed_index)

            result: ChainResult = self._run_chain(start, seed_index, executor)
            chains.append(result)
            if result.outcome is ChainOutcome.CANCELLED:
                break

            self._persist_result(result, len(chains) - 1)

            if self._cancel_event.is_set():
                break
            if seed_index is None or not self._seeds.has_seed(seed_index + 1):
                break
            seed_index += 1

        return TuningReport(chains=tuple(chains))

    def _run_chain(
        self,
        start: PredictionParams,
        seed_index: int | None,
        executor: Executor | None,
    ) -> ChainResult:
        _LOG.info(
            "Starting chain from %s",
            "defaults" if seed_index is None else f"seed {seed_index}",
        )
        min_error: float = self._config.min_error()
        max_iterations: int = self._config.max_iterations()

        current: PredictionParams = start
        current_error: float = self._score(current)
        evaluations: int = 1
        history: list[float] = [current_error]
        iterations: int = 0
        outcome: ChainOutcome | None = None

        while current_error > min_error and iterations < max_iterations:
            if self._cancel_event.is_set():
                outcome = ChainOutcome.CANCELLED
                break

            step: _StepResult = self._improve(current, current_error, executor)
            evaluations += step.evaluations
            if step.cancelled:
                outcome = ChainOutcome.CANCELLED
                break
            if step.params is None:
                outcome = ChainOutcome.LOCAL_MINIMUM
                break

            current = step.params
            current_error = step.error
            iterations += 1
            history.append(current_error)
            _LOG.debug("Committed step %d, error %.6f", iterations, current_error)

        if outcome is None:
            if current_error <= min_error:
                outcome = ChainOutcome.CONVERGED
            else:
                outcome = ChainOutcome.ITERATION_LIMIT

        _LOG.info(
            "Chain ended (%s) after %d steps and %d evaluations, error %.6f",
            outcome.value,
            iterations,
            evaluations,
            current_error,
        )
        return ChainResult(
            seed_index=seed_index,
            params=current,
            error=current_error,
            outcome=outcome,
            iterations=iterations,
            evaluations=evaluations,
            error_history=tuple(history),
        )

    def _improve(
        self,
        current: PredictionParams,
        current_error: float,
        executor: Executor | None,
    ) -> _StepResult:
        """Search the neighborhood for a strictly better parameter set."""
        # Candidate errors are pure, so repeated attempts reuse them
        scores: dict[PredictionParams, float] = {}
        best_params: PredictionParams | None = None
        best_error: float = math.inf
        evaluations: int = 0

        for _ in range(self._config.max_neighbor_attempts()):
            neighbors: tuple[PredictionParams, ...] = generate_neighbors(current)
            pending: list[PredictionParams] = [
                candidate for candidate in neighbors if candidate not in scores
            ]
            errors: list[float] | None = self._score_all(pending, executor)
            if errors is None:
                return _StepResult(None, current_error, evaluations, cancelled=True)
            evaluations += len(pending)
            scores.update(zip(pending, errors))

            for candidate in neighbors:
                if scores[candidate] < best_error:
                    best_params = candidate
                    best_error = scores[candidate]

            if best_params is not None and best_error < current_error:
                return _StepResult(best_params, best_error, evaluations)

        return _StepResult(None, current_error, evaluations)

    def _score(self, params: PredictionParams) -> float:
        """Return the error of a parameter set, scoring failures as infinite."""
        try:
            return self._objective(params)
        except PredictionFailure as exc:
            _LOG.warning("Prediction failed, scoring candidate as infinite: %s", exc)
            return IMPLAUSIBLE_ERROR

    def _score_or_skip(self, params: PredictionParams) -> float | None:
        if self._cancel_event.is_set():
            return None
        return self._score(params)

    def _score_all(
        self,
        candidates: Sequence[PredictionParams],
        executor: Executor | None,
    ) -> list[float] | None:
        """Return candidate errors in candidate order, or None if cancelled."""
        results: list[float | None]
        if executor is None:
            results = []
            for candidate in candidates:
                error: float | None = self._score_or_skip(candidate)
                if error is None:
                    return None
                results.append(error)
        else:
            results = list(executor.map(self._score_or_skip, candidates))

        errors: list[float] = []
        for result in results:
            if result is None:
                return None
            errors.append(result)
        return errors

    def _persist_result(self, result: ChainResult, chain_index: int) -> None:
        if not self._config.persist_on_local_minimum() or self._persist is None:
            return
        name: str = f"{PERSIST_NAME_PREFIX}_{chain_index:03d}"
        try:
            self._persist(result.params, name, result.error)
        except TuningPersistenceError as exc:
            _LOG.error("Failed to persist chain %d result: %s", chain_index, exc)
            return
        _LOG.info("Persisted chain %d result as %s", chain_index, name)


def optimize(
    corpus: TrainingCorpus | None,
    config: TuningConfig,
    predictor: TrajectoryPredictor,
    seeds: SeedQueue | None = None,
    *,
    persist: ParamsSink | None = None,
    cancel_event: threading.Event | None = None,
) -> PredictionParams:
    """Tune prediction parameters against a corpus and return the result.

    Returns the parameters at the end of the last chain. When persisting is
    enabled and no sink is given, chain results are written as YAML into the
    configured output directory.
    """
    return run_tuning(
        corpus,
        config,
        predictor,
        seeds,
        persist=persist,
        cancel_event=cancel_event,
    ).final.params


def run_tuning(
    corpus: TrainingCorpus | None,
    config: TuningConfig,
    predictor: TrajectoryPredictor,
    seeds: SeedQueue | None = None,
    *,
    persist: ParamsSink | None = None,
    cancel_event: threading.Event | None = None,
) -> TuningReport:
    """Tune prediction parameters and return the report of every chain."""
    if corpus is None:
        raise ConfigurationError("A training corpus is required")
    evaluator: ErrorEvaluator = ErrorEvaluator(
        corpus, predictor, reject_implausible=config.reject_implausible()
    )

    if persist is None and config.persist_on_local_minimum():
        output_dir: str = config.params.save.output_dir
        atomic_write: bool = config.params.save.atomic_write

        def _save(params: PredictionParams, name: str, error: float) -> None:
            save_params(
                params,
                name,
                output_dir,
                atomic_write=atomic_write,
                mean_error=error,
            )

        persist = _save

    optimizer: HillClimbOptimizer = HillClimbOptimizer(
        evaluator.evaluate,
        config,
        seeds=seeds,
        persist=persist,
        cancel_event=cancel_event,
    )
    return optimizer.run()
