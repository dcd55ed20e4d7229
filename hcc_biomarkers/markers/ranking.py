# hcc_biomarkers/markers/ranking.py
"""Gene ranking by univariate discriminative power (ROC AUC)."""

import threading
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from hcc_biomarkers.core.exceptions import DegenerateResultError, InvalidInputError
from hcc_biomarkers.core.logging import setup_logging
from hcc_biomarkers.core.utils import resolve_workers
from hcc_biomarkers.markers.auc import has_both_classes, mann_whitney_auc, validate_labels

logger = setup_logging(__name__)

PROGRESS_EVERY = 500

ExpressionInput = pd.DataFrame | Mapping[str, Sequence[float]]


@dataclass(frozen=True)
class GeneScore:
    """AUC of one gene; n_case/n_control count the observations actually used."""

    gene_id: str
    auc: float
    n_case: int
    n_control: int


@dataclass(frozen=True)
class GeneDiagnostic:
    """A gene that could not be scored and why."""

    gene_id: str
    reason: str  # "all_missing" or "degenerate"
    detail: str = ""


@dataclass
class RankingResult:
    """Outcome of a ranking pass.

    `ranked` is sorted by descending AUC with ties in input order. Genes that
    could not be scored are listed in `diagnostics`. `cancelled` is set when
    the pass was stopped early, in which case `ranked` covers only the genes
    evaluated before the stop.
    """

    ranked: list[GeneScore] = field(default_factory=list)
    diagnostics: list[GeneDiagnostic] = field(default_factory=list)
    cancelled: bool = False
    n_evaluated: int = 0

    def top_genes(self, n: int | None = None) -> list[str]:
        genes = [score.gene_id for score in self.ranked]
        return genes if n is None else genes[:n]

    def to_frame(self) -> pd.DataFrame:
        """Ranked scores as a DataFrame with a 1-based 'rank' column."""
        frame = pd.DataFrame(
            [
                {
                    "gene_id": s.gene_id,
                    "auc": s.auc,
                    "n_case": s.n_case,
                    "n_control": s.n_control,
                }
                for s in self.ranked
            ],
            columns=["gene_id", "auc", "n_case", "n_control"],
        )
        frame.insert(0, "rank", np.arange(1, len(frame) + 1))
        return frame

    def diagnostics_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            [{"gene_id": d.gene_id, "reason": d.reason, "detail": d.detail} for d in self.diagnostics],
            columns=["gene_id", "reason", "detail"],
        )


def as_expression_frame(matrix: ExpressionInput) -> pd.DataFrame:
    """Validate an expression matrix (genes x samples) and return it as a float DataFrame.

    Raises:
        InvalidInputError: For an empty matrix, duplicated gene ids, ragged
            gene vectors or non-numeric values.
    """
    if isinstance(matrix, pd.DataFrame):
        frame = matrix
    elif isinstance(matrix, Mapping):
        lengths = {gene: len(values) for gene, values in matrix.items()}
        if len(set(lengths.values())) > 1:
            expected = next(iter(lengths.values()))
            ragged = [gene for gene, n in lengths.items() if n != expected]
            msg = f"Gene vectors differ in length (expected {expected}); offending genes: {ragged[:5]}"
            raise InvalidInputError(msg)
        frame = pd.DataFrame.from_dict({gene: list(v) for gene, v in matrix.items()}, orient="index")
    else:
        msg = f"Expression matrix must be a DataFrame or mapping, got {type(matrix).__name__}."
        raise InvalidInputError(msg)

    if frame.shape[0] == 0 or frame.shape[1] == 0:
        msg = f"Expression matrix is empty ({frame.shape[0]} genes x {frame.shape[1]} samples)."
        raise InvalidInputError(msg)
    duplicated = frame.index[frame.index.duplicated()].unique().tolist()
    if duplicated:
        msg = f"Gene identifiers must be unique; duplicated: {duplicated[:5]}"
        raise InvalidInputError(msg)
    try:
        return frame.astype(float)
    except (TypeError, ValueError) as e:
        msg = f"Expression matrix contains non-numeric values: {e}"
        raise InvalidInputError(msg) from e


def _score_gene(gene_id: str, values: np.ndarray, labels: np.ndarray) -> GeneScore | GeneDiagnostic:
    usable = ~np.isnan(values)
    if not usable.any():
        return GeneDiagnostic(gene_id, "all_missing", "no measured values")
    usable_labels = labels[usable]
    try:
        auc = mann_whitney_auc(values[usable], usable_labels)
    except DegenerateResultError as e:
        return GeneDiagnostic(gene_id, "degenerate", str(e))
    n_case = int(usable_labels.sum())
    return GeneScore(gene_id, auc, n_case, int(usable.sum()) - n_case)


def rank_genes(
    matrix: ExpressionInput,
    labels: Sequence[int] | np.ndarray,
    top_n: int | None = None,
    *,
    n_jobs: int | None = None,
    cancel_event: threading.Event | None = None,
) -> RankingResult:
    """Rank genes by AUC of their expression against binary sample labels.

    Args:
        matrix: Expression matrix, genes x samples (DataFrame indexed by gene id,
            or a mapping of gene id to per-sample values).
        labels: 0 (control) / 1 (case) per sample, aligned with the matrix columns.
        top_n: Keep only the first `top_n` ranked genes.
        n_jobs: Worker threads; None reads `max_cpu_cores` from the config.
        cancel_event: Checked between genes; when set, the partial ranking is
            returned with `cancelled=True`.

    Returns:
        RankingResult with scores sorted by descending AUC (stable).

    Raises:
        InvalidInputError: Empty or malformed matrix, misaligned or one-class labels.
    """
    frame = as_expression_frame(matrix)
    label_array = validate_labels(labels, frame.shape[1])
    if not has_both_classes(label_array):
        msg = "Labels must contain both classes (at least one 0 and one 1)."
        raise InvalidInputError(msg)
    if top_n is not None and top_n < 1:
        msg = f"top_n must be a positive integer, got {top_n}."
        raise InvalidInputError(msg)

    gene_ids = frame.index.tolist()
    values = frame.to_numpy()
    n_genes = len(gene_ids)
    workers = resolve_workers(n_jobs)
    logger.info(
        f"Ranking {n_genes} genes by AUC ({int(label_array.sum())} case vs "
        f"{int((label_array == 0).sum())} control samples, workers={workers})"
    )

    def evaluate(row: int) -> GeneScore | GeneDiagnostic | None:
        if cancel_event is not None and cancel_event.is_set():
            return None
        outcome = _score_gene(gene_ids[row], values[row], label_array)
        if (row + 1) % PROGRESS_EVERY == 0:
            logger.info(f"  AUC ranking progress: {row + 1}/{n_genes}...")
        return outcome

    if workers > 1:
        # map() yields in submission order, so the merge is deterministic
        with ThreadPoolExecutor(max_workers=workers) as executor:
            outcomes = list(executor.map(evaluate, range(n_genes)))
    else:
        outcomes = []
        for row in range(n_genes):
            outcome = evaluate(row)
            if outcome is None:
                break
            outcomes.append(outcome)

    result = RankingResult()
    for outcome in outcomes:
        if outcome is None:
            continue
        result.n_evaluated += 1
        if isinstance(outcome, GeneDiagnostic):
            result.diagnostics.append(outcome)
        else:
            result.ranked.append(outcome)
    result.cancelled = result.n_evaluated < n_genes

    # list.sort is stable, reverse=True included
    result.ranked.sort(key=lambda score: score.auc, reverse=True)
    if top_n is not None:
        result.ranked = result.ranked[:top_n]

    if result.cancelled:
        logger.warning(f"Ranking cancelled after {result.n_evaluated}/{n_genes} genes.")
    if result.diagnostics:
        reasons = pd.Series([d.reason for d in result.diagnostics]).value_counts().to_dict()
        logger.warning(f"{len(result.diagnostics)} genes could not be scored: {reasons}")
    logger.info(f"Ranking complete: {len(result.ranked)} genes reported.")
    return result
