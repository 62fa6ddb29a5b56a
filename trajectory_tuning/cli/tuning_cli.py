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
Command line entry point for tuning prediction parameters from recorded drives.
"""

import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

from trajectory_tuning.config.tuning_config import ConfigurationError
from trajectory_tuning.config.tuning_config import TuningConfig
from trajectory_tuning.config.tuning_params import EVALUATION_WORKERS
from trajectory_tuning.config.tuning_params import SAVE_OUTPUT_DIR
from trajectory_tuning.config.tuning_params import SEARCH_MAX_ITERATIONS
from trajectory_tuning.config.tuning_params import SEARCH_MAX_NEIGHBOR_ATTEMPTS
from trajectory_tuning.config.tuning_params import SEARCH_MIN_ERROR
from trajectory_tuning.config.tuning_params import EvaluationParams
from trajectory_tuning.config.tuning_params import RestartParams
from trajectory_tuning.config.tuning_params import SaveParams
from trajectory_tuning.config.tuning_params import SearchParams
from trajectory_tuning.config.tuning_params import TuningParams
from trajectory_tuning.params.prediction_params import PredictionParams
from trajectory_tuning.params.prediction_params import PredictionParamsError
from trajectory_tuning.prediction.dead_reckoning import DeadReckoningPredictor
from trajectory_tuning.prediction.predictor import PredictionFailure
from trajectory_tuning.solver.error_evaluator import DetailedErrors
from trajectory_tuning.solver.error_evaluator import EmptyCorpusError
from trajectory_tuning.solver.error_evaluator import ImplausibleParameterError
from trajectory_tuning.solver.error_evaluator import UnsupportedComparisonError
from trajectory_tuning.solver.error_evaluator import evaluate_detailed
from trajectory_tuning.solver.hill_climb import ChainResult
from trajectory_tuning.solver.hill_climb import TuningReport
from trajectory_tuning.solver.hill_climb import run_tuning
from trajectory_tuning.storage.persistence import TuningPersistenceError
from trajectory_tuning.storage.persistence import load_corpus_entry
from trajectory_tuning.storage.persistence import load_params
from trajectory_tuning.storage.persistence import save_params
from trajectory_tuning.tuning_types.corpus import CorpusEntry
from trajectory_tuning.tuning_types.corpus import SeedQueue
from trajectory_tuning.tuning_types.corpus import TrainingCorpus


_LOG: logging.Logger = logging.getLogger(__name__)

# Name of the parameter set written at the end of a tuning run
DEFAULT_OUTPUT_NAME: str = "calibrated"

# Errors reported to the user without a traceback
_USER_ERRORS = (
    ConfigurationError,
    EmptyCorpusError,
    ImplausibleParameterError,
    PredictionFailure,
    PredictionParamsError,
    TuningPersistenceError,
    UnsupportedComparisonError,
)


################################################################################
# Argument parsing
################################################################################


def parse_log_spec(spec: str) -> tuple[str, int, Optional[str]]:
    """Split a PATH:LOOPS[:GROUND_TRUTH] log argument."""
    parts: list[str] = spec.split(":")
    if len(parts) not in (2, 3) or not parts[0]:
        raise argparse.ArgumentTypeError(
            f"'{spec}' must have the form PATH:LOOPS[:GROUND_TRUTH]"
        )
    try:
        loops: int = int(parts[1])
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"'{parts[1]}' is not a loop count") from exc
    if loops < 0:
        raise argparse.ArgumentTypeError("Loop count must be non-negative")
    ground_truth: Optional[str] = parts[2] if len(parts) == 3 and parts[2] else None
    return parts[0], loops, ground_truth


def _add_corpus_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--log",
        dest="logs",
        action="append",
        required=True,
        type=parse_log_spec,
        metavar="PATH:LOOPS[:GROUND_TRUTH]",
        help="Recorded drive, number of loops driven and optional ground truth",
    )
    parser.add_argument(
        "--no-reject-implausible",
        dest="reject_implausible",
        action="store_false",
        help="Keep parameter sets whose heading turns through too many loops",
    )


def _parse_args(args=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Tune trajectory prediction parameters on recorded drives"
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Enable debug logging"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    tune = commands.add_parser("tune", help="Run the hill-climbing search")
    _add_corpus_arguments(tune)
    tune.add_argument(
        "--seed",
        dest="seeds",
        action="append",
        default=[],
        metavar="PARAMS.yaml",
        help="Starting parameter set for random restarts, in order",
    )
    tune.add_argument("--max-iterations", type=int, default=SEARCH_MAX_ITERATIONS)
    tune.add_argument("--min-error", type=float, default=SEARCH_MIN_ERROR)
    tune.add_argument(
        "--max-neighbor-attempts",
        type=int,
        default=SEARCH_MAX_NEIGHBOR_ATTEMPTS,
    )
    tune.add_argument(
        "--persist-local-minima",
        action="store_true",
        help="Save the result of every finished search chain",
    )
    tune.add_argument(
        "--random-restart",
        action="store_true",
        help="Start one search chain per seed",
    )
    tune.add_argument(
        "--workers",
        type=int,
        default=EVALUATION_WORKERS,
        help="Number of threads evaluating neighbors",
    )
    tune.add_argument("--output-dir", default=SAVE_OUTPUT_DIR)
    tune.add_argument("--output", default=DEFAULT_OUTPUT_NAME)

    evaluate = commands.add_parser("evaluate", help="Report per-drive errors")
    _add_corpus_arguments(evaluate)
    evaluate.add_argument(
        "--params",
        default=None,
        metavar="PARAMS.yaml",
        help="Parameter set to evaluate, defaults when omitted",
    )

    info = commands.add_parser("info", help="Load the corpus and report its size")
    _add_corpus_arguments(info)

    return parser.parse_args(args=args)


################################################################################
# Commands
################################################################################


def _load_corpus(logs: list[tuple[str, int, Optional[str]]]) -> TrainingCorpus:
    corpus: TrainingCorpus = TrainingCorpus()
    for path, loops, ground_truth in logs:
        entry: CorpusEntry = load_corpus_entry(path, loops, ground_truth)
        _LOG.info("Loaded %s with %d samples", entry.name, len(entry.samples))
        corpus = corpus.with_entry(entry)
    return corpus


def _tuning_config(options: argparse.Namespace) -> TuningConfig:
    params: TuningParams = TuningParams(
        search=SearchParams(
            max_iterations=options.max_iterations,
            min_error=options.min_error,
            max_neighbor_attempts=options.max_neighbor_attempts,
        ),
        restart=RestartParams(use_random_restart=options.random_restart),
        evaluation=EvaluationParams(
            reject_implausible=options.reject_implausible,
            workers=options.workers,
        ),
        save=SaveParams(
            persist_on_local_minimum=options.persist_local_minima,
            output_dir=options.output_dir,
        ),
    )
    return TuningConfig(params)


def _run_tune(options: argparse.Namespace) -> int:
    config: TuningConfig = _tuning_config(options)
    corpus: TrainingCorpus = _load_corpus(options.logs)
    seeds: SeedQueue = SeedQueue([load_params(path) for path in options.seeds])

    cancel_event: threading.Event = threading.Event()

    def _request_cancel(signum, frame) -> None:
        _LOG.info("Cancellation requested, finishing current evaluation")
        cancel_event.set()

    previous_handler = signal.signal(signal.SIGINT, _request_cancel)
    try:
        report: TuningReport = run_tuning(
            corpus,
            config,
            DeadReckoningPredictor(),
            seeds,
            cancel_event=cancel_event,
        )
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    for index, chain in enumerate(report.chains):
        _LOG.info(
            "Chain %d: %s, error %.6f after %d steps",
            index,
            chain.outcome.value,
            chain.error,
            chain.iterations,
        )

    best: ChainResult = report.best()
    _LOG.info(
        "Lowest error %.6f from chain starting at %s",
        best.error,
        "defaults" if best.seed_index is None else f"seed {best.seed_index}",
    )

    final_params: PredictionParams = report.final.params
    path: Path = save_params(
        final_params,
        options.output,
        options.output_dir,
        mean_error=report.final.error,
    )
    print(f"Saved parameters with mean error {report.final.error:.6f} to {path}")
    return 0


def _run_evaluate(options: argparse.Namespace) -> int:
    corpus: TrainingCorpus = _load_corpus(options.logs)
    params: PredictionParams = (
        PredictionParams.defaults()
        if options.params is None
        else load_params(options.params)
    )
    errors: DetailedErrors = evaluate_detailed(
        corpus,
        params,
        DeadReckoningPredictor(),
        reject_implausible=options.reject_implausible,
    )
    for entry, positional, orientation in zip(
        corpus, errors.positional_errors, errors.orientation_errors
    ):
        print(
            f"{entry.name}: position {positional:.6f} m, "
            f"orientation {orientation:.6f} rad"
        )
    mean_error: float = sum(errors.positional_errors) / len(errors.positional_errors)
    print(f"Mean positional error: {mean_error:.6f} m")
    return 0


def _run_info(options: argparse.Namespace) -> int:
    corpus: TrainingCorpus = _load_corpus(options.logs)
    print(f"Length of corpus: {len(corpus)}")
    return 0


################################################################################
# Entry point
################################################################################


def main(args=None) -> int:
    options = _parse_args(args=args)

    logging.basicConfig(
        level=logging.DEBUG if options.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "tune": _run_tune,
        "evaluate": _run_evaluate,
        "info": _run_info,
    }
    try:
        return commands[options.command](options)
    except _USER_ERRORS as exc:
        if exc.__cause__ is not None:
            _LOG.error("%s: %s", exc, exc.__cause__)
        else:
            _LOG.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
