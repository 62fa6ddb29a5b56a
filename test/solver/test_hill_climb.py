################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""Tests for the hill-climbing optimizer."""

from __future__ import annotations

import math
import threading
from pathlib import Path
from typing import Sequence

import numpy as np
import pytest
import yaml

from trajectory_tuning.config.tuning_config import ConfigurationError
from trajectory_tuning.config.tuning_config import TuningConfig
from trajectory_tuning.config.tuning_params import EvaluationParams
from trajectory_tuning.config.tuning_params import RestartParams
from trajectory_tuning.config.tuning_params import SaveParams
from trajectory_tuning.config.tuning_params import SearchParams
from trajectory_tuning.config.tuning_params import TuningParams
from trajectory_tuning.params.prediction_params import PredictionParams
from trajectory_tuning.prediction.predictor import PredictionFailure
from trajectory_tuning.solver.hill_climb import ChainOutcome
from trajectory_tuning.solver.hill_climb import ChainResult
from trajectory_tuning.solver.hill_climb import HillClimbOptimizer
from trajectory_tuning.solver.hill_climb import TuningReport
from trajectory_tuning.solver.hill_climb import optimize
from trajectory_tuning.solver.hill_climb import run_tuning
from trajectory_tuning.storage.persistence import TuningPersistenceError
from trajectory_tuning.storage.persistence import load_params
from trajectory_tuning.tuning_types.corpus import CorpusEntry
from trajectory_tuning.tuning_types.corpus import SeedQueue
from trajectory_tuning.tuning_types.corpus import TrainingCorpus
from trajectory_tuning.tuning_types.pose import Pose
from trajectory_tuning.tuning_types.sensor_sample import SensorSample


def _build_config(
    *,
    max_iterations: int = 1000,
    min_error: float = 0.0,
    max_neighbor_attempts: int = 1,
    use_random_restart: bool = False,
    workers: int = 1,
    persist: bool = False,
    output_dir: str = "calibrated_params",
) -> TuningConfig:
    """Create a validated tuning configuration."""
    params: TuningParams = TuningParams(
        search=SearchParams(
            max_iterations=max_iterations,
            min_error=min_error,
            max_neighbor_attempts=max_neighbor_attempts,
        ),
        restart=RestartParams(use_random_restart=use_random_restart),
        evaluation=EvaluationParams(workers=workers),
        save=SaveParams(persist_on_local_minimum=persist, output_dir=output_dir),
    )
    return TuningConfig(params)


def _ukf_basin(params: PredictionParams) -> float:
    """Objective with a single improving move from the defaults."""
    defaults: PredictionParams = PredictionParams.defaults()
    if params == defaults:
        return 1.0
    if params == defaults.toggled("ukf"):
        return 0.5
    return 2.0


def _exponent_slope(params: PredictionParams) -> float:
    """Objective that always improves as exponent_cc grows."""
    return 100.0 - params.blending.exponent_cc


def _bowl(params: PredictionParams) -> float:
    """Smooth objective with its minimum away from the defaults."""
    blending = params.blending
    return (
        abs(blending.steer_angle_factor - 1.1)
        + abs(blending.odo_gyro_factor - 0.8)
        + abs(blending.sigma_speed_kernel - 0.2)
    )


class _LoopPredictor:
    """Predictor whose loop-closure gap shrinks as steer_angle_factor nears 1.1."""

    def predict(
        self, samples: Sequence[SensorSample], params: PredictionParams
    ) -> tuple[Pose, ...]:
        gap_m: float = abs(params.blending.steer_angle_factor - 1.1)
        return (
            Pose(t_s=samples[0].t_s, position_m=np.zeros(3), heading_rad=0.0),
            Pose(
                t_s=samples[-1].t_s,
                position_m=np.array([gap_m, 0.0, 0.0]),
                heading_rad=2.0 * math.pi,
            ),
        )


def _build_corpus() -> TrainingCorpus:
    samples: tuple[SensorSample, ...] = tuple(
        SensorSample(
            t_s=0.1 * index,
            speed_mps=1.0,
            steering_angle_rad=0.0,
            gyro_rads=np.zeros(3),
        )
        for index in range(3)
    )
    return TrainingCorpus(
        entries=(CorpusEntry(expected_loop_count=1, samples=samples),)
    )


def test_single_improvement_then_local_minimum() -> None:
    """One improving flag toggle is committed before a local minimum."""
    optimizer: HillClimbOptimizer = HillClimbOptimizer(_ukf_basin, _build_config())

    report: TuningReport = optimizer.run()

    result: ChainResult = report.final
    assert len(report.chains) == 1
    assert result.outcome is ChainOutcome.LOCAL_MINIMUM
    assert result.params == PredictionParams.defaults().toggled("ukf")
    assert result.error == 0.5
    assert result.iterations == 1
    assert result.error_history == (1.0, 0.5)
    # Start, 20 default neighbors, 26 neighbors with the unscented filter on
    assert result.evaluations == 1 + 20 + 26
    assert result.seed_index is None


def test_converged_start_is_returned_unchanged() -> None:
    """A start already at the threshold is returned without a step."""
    optimizer: HillClimbOptimizer = HillClimbOptimizer(
        lambda params: 0.5, _build_config(min_error=1.0)
    )

    result: ChainResult = optimizer.run().final

    assert result.outcome is ChainOutcome.CONVERGED
    assert result.params == PredictionParams.defaults()
    assert result.iterations == 0
    assert result.evaluations == 1


def test_exact_zero_threshold_converges() -> None:
    """A step that reaches exactly zero error meets a zero threshold."""
    target: PredictionParams = PredictionParams.defaults().with_value(
        "blending", "steer_angle_factor", 1.0 + 0.02
    )

    def objective(params: PredictionParams) -> float:
        return 0.0 if params == target else 1.0

    result: ChainResult = (
        HillClimbOptimizer(objective, _build_config(min_error=0.0)).run().final
    )

    assert result.outcome is ChainOutcome.CONVERGED
    assert result.iterations == 1
    assert result.error == 0.0
    assert result.params == target
    assert result.error_history == (1.0, 0.0)


def test_iteration_limit() -> None:
    """The committed step cap should end the chain."""
    optimizer: HillClimbOptimizer = HillClimbOptimizer(
        _exponent_slope, _build_config(max_iterations=3)
    )

    result: ChainResult = optimizer.run().final

    assert result.outcome is ChainOutcome.ITERATION_LIMIT
    assert result.iterations == 3
    assert result.params.blending.exponent_cc == pytest.approx(1.3)
    assert len(result.error_history) == 4


def test_error_history_strictly_decreases() -> None:
    """Every committed step must strictly lower the error."""
    result: ChainResult = HillClimbOptimizer(_bowl, _build_config()).run().final

    history: tuple[float, ...] = result.error_history
    assert all(later < earlier for earlier, later in zip(history, history[1:]))
    assert result.params.blending.steer_angle_factor == pytest.approx(1.1)
    assert result.params.blending.odo_gyro_factor == pytest.approx(0.8)
    assert result.params.blending.sigma_speed_kernel == pytest.approx(0.2)


def test_equal_error_is_not_an_improvement() -> None:
    """A flat objective stops at the start as a local minimum."""
    result: ChainResult = (
        HillClimbOptimizer(
            lambda params: 3.0, _build_config(max_neighbor_attempts=5)
        )
        .run()
        .final
    )

    assert result.outcome is ChainOutcome.LOCAL_MINIMUM
    assert result.params == PredictionParams.defaults()
    # Repeated attempts reuse the scores of the first attempt
    assert result.evaluations == 1 + 20


def test_prediction_failure_scores_infinite() -> None:
    """Failing candidates are skipped instead of aborting the search."""

    def objective(params: PredictionParams) -> float:
        if params.flags.ukf:
            raise PredictionFailure("diverged")
        return _ukf_basin(params)

    result: ChainResult = HillClimbOptimizer(objective, _build_config()).run().final

    assert result.outcome is ChainOutcome.LOCAL_MINIMUM
    assert result.params == PredictionParams.defaults()
    assert result.error == 1.0


def test_infinite_start_can_improve() -> None:
    """A start rejected as implausible still moves to a finite neighbor."""

    def objective(params: PredictionParams) -> float:
        if params == PredictionParams.defaults():
            return math.inf
        return _exponent_slope(params)

    result: ChainResult = (
        HillClimbOptimizer(objective, _build_config(max_iterations=1)).run().final
    )

    assert result.error_history[0] == math.inf
    assert math.isfinite(result.error)


def test_random_restart_persists_every_chain() -> None:
    """Two seeds with persistence enabled yield two saved parameter sets."""
    seeds: SeedQueue = SeedQueue(
        [
            PredictionParams.defaults(),
            PredictionParams.defaults().with_value(
                "blending", "steer_angle_factor", 2.0
            ),
        ]
    )
    saved: list[tuple[str, PredictionParams]] = []
    errors: list[float] = []

    def sink(params: PredictionParams, name: str, error: float) -> None:
        saved.append((name, params))
        errors.append(error)

    optimizer: HillClimbOptimizer = HillClimbOptimizer(
        lambda params: 5.0,
        _build_config(use_random_restart=True, persist=True),
        seeds=seeds,
        persist=sink,
    )
    report: TuningReport = optimizer.run()

    assert [chain.seed_index for chain in report.chains] == [0, 1]
    assert [name for name, _ in saved] == ["local_minimum_000", "local_minimum_001"]
    assert saved[1][1] == seeds.seed(1)
    assert errors == [5.0, 5.0]
    assert report.final.params == seeds.seed(1)


def test_restart_keeps_best_available() -> None:
    """The report exposes both the last and the best chain."""
    seeds: SeedQueue = SeedQueue(
        [
            PredictionParams.defaults().with_value(
                "blending", "steer_angle_factor", 1.5
            ),
            PredictionParams.defaults(),
        ]
    )

    def objective(params: PredictionParams) -> float:
        return 10.0 * params.blending.steer_angle_factor

    report: TuningReport = HillClimbOptimizer(
        objective,
        _build_config(use_random_restart=True, max_iterations=2),
        seeds=seeds,
    ).run()

    assert report.final.seed_index == 1
    assert report.best().seed_index == 1
    assert report.chains[0].error > report.chains[1].error
    assert not report.cancelled


def test_persist_failure_does_not_stop_search() -> None:
    """A failing sink is logged and the remaining chains still run."""
    seeds: SeedQueue = SeedQueue(
        [PredictionParams.defaults(), PredictionParams.defaults().toggled("ukf")]
    )

    def sink(params: PredictionParams, name: str, error: float) -> None:
        raise TuningPersistenceError("disk full")

    report: TuningReport = HillClimbOptimizer(
        lambda params: 5.0,
        _build_config(use_random_restart=True, persist=True),
        seeds=seeds,
        persist=sink,
    ).run()

    assert len(report.chains) == 2


def test_inconsistent_configuration_fails_fast() -> None:
    """Restart without seeds or persistence without a sink is rejected."""
    with pytest.raises(ConfigurationError):
        HillClimbOptimizer(_bowl, _build_config(use_random_restart=True))
    with pytest.raises(ConfigurationError):
        HillClimbOptimizer(_bowl, _build_config(persist=True))
    with pytest.raises(ConfigurationError):
        HillClimbOptimizer(
            _bowl,
            _build_config(use_random_restart=True),
            seeds=SeedQueue(
                [
                    PredictionParams.defaults().with_value(
                        "blending", "odo_mag_factor", 5.0
                    )
                ]
            ),
        )


def test_seeds_ignored_without_restart() -> None:
    """Without random restart a single chain starts from the defaults."""
    seeds: SeedQueue = SeedQueue([PredictionParams.defaults().toggled("ukf")])
    report: TuningReport = HillClimbOptimizer(
        lambda params: 5.0, _build_config(), seeds=seeds
    ).run()

    assert len(report.chains) == 1
    assert report.final.params == PredictionParams.defaults()


def test_cancel_before_run() -> None:
    """A pre-set cancel event stops the chain after scoring its start."""
    cancel_event: threading.Event = threading.Event()
    cancel_event.set()
    saved: list[str] = []

    report: TuningReport = HillClimbOptimizer(
        _bowl,
        _build_config(persist=True),
        persist=lambda params, name, error: saved.append(name),
        cancel_event=cancel_event,
    ).run()

    assert report.cancelled
    assert report.final.outcome is ChainOutcome.CANCELLED
    assert report.final.params == PredictionParams.defaults()
    assert report.final.evaluations == 1
    assert saved == []


def test_cancel_during_neighbor_scoring() -> None:
    """Cancelling mid-step keeps the last committed parameters."""
    calls: list[PredictionParams] = []
    optimizer: HillClimbOptimizer

    def objective(params: PredictionParams) -> float:
        calls.append(params)
        if len(calls) == 5:
            optimizer.cancel()
        return _bowl(params)

    optimizer = HillClimbOptimizer(objective, _build_config())
    result: ChainResult = optimizer.run().final

    assert result.outcome is ChainOutcome.CANCELLED
    assert result.params == PredictionParams.defaults()
    assert result.iterations == 0
    assert len(calls) == 5


def test_parallel_matches_sequential() -> None:
    """Concurrent neighbor scoring produces the same chain."""
    sequential: ChainResult = (
        HillClimbOptimizer(_bowl, _build_config(workers=1)).run().final
    )
    parallel: ChainResult = (
        HillClimbOptimizer(_bowl, _build_config(workers=4)).run().final
    )

    assert parallel.params == sequential.params
    assert parallel.error_history == sequential.error_history
    assert parallel.evaluations == sequential.evaluations


def test_optimize_against_corpus() -> None:
    """The end-to-end entry point tunes the steering factor."""
    params: PredictionParams = optimize(
        _build_corpus(),
        _build_config(min_error=0.05, max_neighbor_attempts=3),
        _LoopPredictor(),
    )

    assert params.blending.steer_angle_factor == pytest.approx(1.06)
    params.validate()


def test_run_tuning_requires_corpus() -> None:
    """A missing corpus is a configuration error."""
    with pytest.raises(ConfigurationError):
        run_tuning(None, _build_config(), _LoopPredictor())


def test_run_tuning_persists_to_output_dir(tmp_path: Path) -> None:
    """Without a sink, chain results are written as YAML files."""
    seeds: SeedQueue = SeedQueue(
        [
            PredictionParams.defaults(),
            PredictionParams.defaults().with_value(
                "blending", "steer_angle_factor", 1.5
            ),
        ]
    )
    config: TuningConfig = _build_config(
        min_error=0.05,
        use_random_restart=True,
        persist=True,
        output_dir=str(tmp_path),
    )

    report: TuningReport = run_tuning(
        _build_corpus(), config, _LoopPredictor(), seeds
    )

    assert len(report.chains) == 2
    for index, chain in enumerate(report.chains):
        path: Path = tmp_path / f"local_minimum_{index:03d}.yaml"
        stored: PredictionParams = load_params(path)
        assert stored == chain.params
        document: dict[str, object] = yaml.safe_load(path.read_text(encoding="utf-8"))
        assert document["mean_error"] == pytest.approx(chain.error)
