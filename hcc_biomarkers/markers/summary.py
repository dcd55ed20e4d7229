# hcc_biomarkers/markers/summary.py
"""Summary statistics of bootstrap AUC distributions."""

from collections.abc import Sequence
from dataclasses import asdict, dataclass
from typing import Any

import numpy as np
import pandas as pd

from hcc_biomarkers.core.config import get_bootstrap_config, get_ranking_config
from hcc_biomarkers.core.exceptions import DegenerateResultError, InvalidInputError
from hcc_biomarkers.core.logging import setup_logging
from hcc_biomarkers.markers.auc import validate_labels
from hcc_biomarkers.markers.bootstrap import BootstrapResult, bootstrap_auc
from hcc_biomarkers.markers.ranking import ExpressionInput, RankingResult, as_expression_frame

logger = setup_logging(__name__)

SUMMARY_COLUMNS = [
    "gene_id",
    "auc",
    "boot_mean",
    "boot_std",
    "ci_lower",
    "ci_upper",
    "n_valid",
    "n_skipped",
]


@dataclass(frozen=True)
class AUCSummary:
    mean: float
    std: float
    median: float
    ci_lower: float
    ci_upper: float
    confidence_level: float
    n_valid: int
    n_skipped: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def summarize_distribution(
    distribution: Sequence[float] | np.ndarray,
    confidence_level: float | None = None,
    n_skipped: int = 0,
) -> AUCSummary:
    """Mean, sample standard deviation and percentile interval of an AUC distribution.

    Raises:
        InvalidInputError: If `confidence_level` is not strictly between 0 and 1.
        DegenerateResultError: If the distribution is empty.
    """
    if confidence_level is None:
        confidence_level = get_bootstrap_config()["confidence_level"]
    if not 0.0 < confidence_level < 1.0:
        msg = f"confidence_level must lie in (0, 1), got {confidence_level}."
        raise InvalidInputError(msg)

    values = np.asarray(distribution, dtype=float)
    if values.size == 0:
        msg = "Cannot summarize an empty AUC distribution."
        raise DegenerateResultError(msg)

    lower_percentile = (1.0 - confidence_level) / 2.0 * 100
    upper_percentile = (1.0 + confidence_level) / 2.0 * 100
    ci_lower, ci_upper = np.percentile(values, [lower_percentile, upper_percentile])
    return AUCSummary(
        mean=float(np.mean(values)),
        std=float(np.std(values, ddof=1)) if values.size > 1 else 0.0,
        median=float(np.median(values)),
        ci_lower=float(ci_lower),
        ci_upper=float(ci_upper),
        confidence_level=float(confidence_level),
        n_valid=int(values.size),
        n_skipped=int(n_skipped),
    )


def summarize_bootstrap(result: BootstrapResult, confidence_level: float | None = None) -> AUCSummary:
    return summarize_distribution(result.distribution, confidence_level, n_skipped=result.n_skipped)


def validate_top_genes(
    matrix: ExpressionInput,
    labels: Sequence[int] | np.ndarray,
    ranking: RankingResult,
    n_genes: int | None = None,
    *,
    iterations: int | None = None,
    seed: int | None = None,
    confidence_level: float | None = None,
    n_jobs: int | None = None,
) -> pd.DataFrame:
    """Bootstrap the AUC of the top ranked genes and tabulate their summaries.

    A gene whose bootstrap is degenerate is reported with NaN statistics
    rather than stopping the report.
    """
    if n_genes is None:
        n_genes = get_ranking_config()["bootstrap_top_n"]
    if iterations is None:
        iterations = get_bootstrap_config()["iterations"]
    frame = as_expression_frame(matrix)
    label_array = validate_labels(labels, frame.shape[1])

    rows = []
    selected = ranking.ranked[:n_genes]
    logger.info(f"Bootstrapping AUC for the top {len(selected)} genes...")
    for score in selected:
        row: dict[str, Any] = {"gene_id": score.gene_id, "auc": score.auc}
        try:
            result = bootstrap_auc(
                frame.loc[score.gene_id].to_numpy(),
                label_array,
                iterations=iterations,
                seed=seed,
                n_jobs=n_jobs,
            )
            summary = summarize_bootstrap(result, confidence_level)
        except DegenerateResultError as e:
            logger.warning(f"Bootstrap for {score.gene_id} produced no valid iterations: {e}")
            row.update(
                boot_mean=np.nan,
                boot_std=np.nan,
                ci_lower=np.nan,
                ci_upper=np.nan,
                n_valid=0,
                n_skipped=iterations,
            )
        else:
            row.update(
                boot_mean=summary.mean,
                boot_std=summary.std,
                ci_lower=summary.ci_lower,
                ci_upper=summary.ci_upper,
                n_valid=summary.n_valid,
                n_skipped=summary.n_skipped,
            )
            if summary.n_skipped:
                logger.info(f"  {score.gene_id}: {summary.n_skipped} resamples skipped (single class).")
        rows.append(row)

    return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)
