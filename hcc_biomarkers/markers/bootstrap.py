# hcc_biomarkers/markers/bootstrap.py
"""Nonparametric bootstrap of a single gene's AUC."""

from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import numpy as np
from rich.progress import (
    BarColumn,
    Progress,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)

from hcc_biomarkers.core.config import get_bootstrap_config
from hcc_biomarkers.core.exceptions import DegenerateResultError, InvalidInputError
from hcc_biomarkers.core.logging import setup_logging
from hcc_biomarkers.core.utils import resolve_workers
from hcc_biomarkers.markers.auc import has_both_classes, mann_whitney_auc, validate_labels

logger = setup_logging(__name__)


@dataclass(frozen=True)
class BootstrapResult:
    """AUC values of the iterations that had both classes, in iteration order."""

    distribution: np.ndarray
    n_iterations: int
    n_skipped: int
    seed: int

    @property
    def n_valid(self) -> int:
        return int(self.distribution.shape[0])


def iteration_rng(seed: int, iteration: int) -> np.random.Generator:
    """Generator for one iteration; depends only on (seed, iteration)."""
    return np.random.default_rng([seed, iteration])


def _check_positive_int(name: str, value: int, minimum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < minimum:
        msg = f"{name} must be an integer >= {minimum}, got {value!r}."
        raise InvalidInputError(msg)
    return int(value)


def bootstrap_auc(
    expression_vector: Sequence[float] | np.ndarray,
    labels: Sequence[int] | np.ndarray,
    iterations: int | None = None,
    seed: int | None = None,
    *,
    n_jobs: int | None = None,
    show_progress: bool = False,
) -> BootstrapResult:
    """Resample (expression, label) pairs with replacement and recompute the AUC.

    Iteration `i` draws its N indices from a generator seeded with
    ``[seed, i]``, so the output is the same whether iterations run
    sequentially or on worker threads. Resamples lacking a class (after
    dropping missing values) are counted as skipped.

    Args:
        expression_vector: One gene's expression per sample.
        labels: 0 (control) / 1 (case) per sample.
        iterations: Number of resamples R; defaults to the bootstrap config.
        seed: Non-negative integer seed; defaults to the bootstrap config.
        n_jobs: Worker threads; None reads `max_cpu_cores` from the config.
        show_progress: Display a rich progress bar (sequential path only).

    Returns:
        BootstrapResult with the valid AUCs and the skipped-iteration count.

    Raises:
        InvalidInputError: N < 2, mismatched lengths, bad iteration count or
            seed, or labels lacking a class.
        DegenerateResultError: Every iteration was skipped.
    """
    config = get_bootstrap_config()
    iterations = _check_positive_int(
        "iterations", config["iterations"] if iterations is None else iterations, 1
    )
    seed = _check_positive_int("seed", config["seed"] if seed is None else seed, 0)

    try:
        values = np.asarray(expression_vector, dtype=float)
    except (TypeError, ValueError) as e:
        msg = f"Expression values must be numeric: {e}"
        raise InvalidInputError(msg) from e
    if values.ndim != 1:
        msg = f"Expression vector must be one-dimensional, got shape {values.shape}."
        raise InvalidInputError(msg)
    n_samples = values.shape[0]
    if n_samples < 2:
        msg = f"Bootstrap needs at least 2 samples, got {n_samples}."
        raise InvalidInputError(msg)
    label_array = validate_labels(labels, n_samples)
    if not has_both_classes(label_array):
        msg = "Labels must contain both classes; no resample could ever yield an AUC."
        raise InvalidInputError(msg)

    def run_iteration(iteration: int) -> float | None:
        indices = iteration_rng(seed, iteration).integers(0, n_samples, size=n_samples)
        resampled_values = values[indices]
        resampled_labels = label_array[indices]
        usable = ~np.isnan(resampled_values)
        resampled_labels = resampled_labels[usable]
        if not has_both_classes(resampled_labels):
            return None
        return mann_whitney_auc(resampled_values[usable], resampled_labels)

    workers = resolve_workers(n_jobs)
    if workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            outcomes = list(executor.map(run_iteration, range(iterations)))
    elif show_progress:
        outcomes = []
        progress_columns = [
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TextColumn("• Items: [cyan]{task.completed}/{task.total}"),
            TextColumn("• Elapsed:"),
            TimeElapsedColumn(),
            TextColumn("• Remaining:"),
            TimeRemainingColumn(),
        ]
        with Progress(*progress_columns, transient=True) as progress:
            task_id = progress.add_task("[cyan]Bootstrap Iterations", total=iterations)
            for iteration in range(iterations):
                outcomes.append(run_iteration(iteration))
                progress.update(task_id, advance=1)
    else:
        outcomes = [run_iteration(iteration) for iteration in range(iterations)]

    distribution = np.array([auc for auc in outcomes if auc is not None], dtype=float)
    n_skipped = iterations - distribution.shape[0]
    if distribution.shape[0] == 0:
        msg = f"All {iterations} bootstrap iterations lacked one of the classes."
        raise DegenerateResultError(msg)

    logger.debug(
        f"Bootstrap finished: {distribution.shape[0]}/{iterations} valid, {n_skipped} skipped (seed={seed})."
    )
    return BootstrapResult(
        distribution=distribution, n_iterations=iterations, n_skipped=n_skipped, seed=seed
    )
