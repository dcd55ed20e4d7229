# hcc_biomarkers/markers/thresholds.py
"""ROC operating points and expression cut-offs for candidate markers."""

from collections.abc import Sequence

import numpy as np
import pandas as pd
from sklearn.metrics import balanced_accuracy_score, confusion_matrix, roc_curve

from hcc_biomarkers.core.config import get_ranking_config
from hcc_biomarkers.core.exceptions import InvalidInputError
from hcc_biomarkers.core.logging import setup_logging
from hcc_biomarkers.markers.auc import has_both_classes, mann_whitney_auc, validate_labels
from hcc_biomarkers.markers.ranking import ExpressionInput, as_expression_frame

logger = setup_logging(__name__)


def roc_points(expression: Sequence[float] | np.ndarray, labels: Sequence[int] | np.ndarray) -> pd.DataFrame:
    """False/true positive rates per threshold, over the non-missing samples."""
    values = np.asarray(expression, dtype=float)
    label_array = validate_labels(labels, values.shape[0])
    usable = ~np.isnan(values)
    if not has_both_classes(label_array[usable]):
        msg = "ROC curve needs both classes among the non-missing samples."
        raise InvalidInputError(msg)
    fpr, tpr, thresholds = roc_curve(label_array[usable], values[usable])
    return pd.DataFrame({"fpr": fpr, "tpr": tpr, "threshold": thresholds})


def find_optimal_thresholds(
    matrix: ExpressionInput,
    labels: Sequence[int] | np.ndarray,
    genes: Sequence[str],
    num_thresholds: int | None = None,
) -> pd.DataFrame:
    """Finds the expression cut-off maximizing balanced accuracy for each gene.

    Direction is "up" when the gene's AUC is at least 0.5 (case samples
    express more, so expression >= cut-off calls a case) and "down" otherwise.
    Cut-offs are scanned evenly between the 5th and 95th percentile.
    """
    if num_thresholds is None:
        num_thresholds = get_ranking_config()["num_thresholds"]
    frame = as_expression_frame(matrix)
    label_array = validate_labels(labels, frame.shape[1])
    logger.info(f"Finding optimal thresholds for {len(genes)} marker genes...")

    result_data = []
    for gene_id in genes:
        if gene_id not in frame.index:
            logger.debug(f"Threshold search: {gene_id} not in expression matrix; skipped.")
            continue
        gene_expr = frame.loc[gene_id].to_numpy()
        usable = ~np.isnan(gene_expr)
        gene_expr_valid = gene_expr[usable]
        target_valid = label_array[usable]
        if gene_expr_valid.size == 0 or not has_both_classes(target_valid):
            logger.debug(f"Threshold search: {gene_id} lacks a class after dropping missing values.")
            continue
        if np.std(gene_expr_valid) < 1e-6:
            continue

        min_expr, max_expr = np.percentile(gene_expr_valid, [5, 95])
        if max_expr <= min_expr:
            continue

        direction = "up" if mann_whitney_auc(gene_expr_valid, target_valid) >= 0.5 else "down"
        best_threshold, best_score = None, -1.0
        for threshold in np.linspace(min_expr, max_expr, num=num_thresholds):
            preds = (
                (gene_expr_valid >= threshold).astype(int)
                if direction == "up"
                else (gene_expr_valid < threshold).astype(int)
            )
            bal_acc = balanced_accuracy_score(target_valid, preds)
            if bal_acc > best_score:
                best_score, best_threshold = bal_acc, threshold

        best_preds = (
            (gene_expr_valid >= best_threshold).astype(int)
            if direction == "up"
            else (gene_expr_valid < best_threshold).astype(int)
        )
        tn, fp, fn, tp = confusion_matrix(target_valid, best_preds, labels=[0, 1]).ravel()
        result_data.append(
            {
                "gene_id": gene_id,
                "optimal_threshold": float(best_threshold),
                "balanced_accuracy": float(best_score),
                "accuracy": (tp + tn) / (tp + tn + fp + fn),
                "sensitivity": tp / (tp + fn) if (tp + fn) > 0 else 0.0,
                "specificity": tn / (tn + fp) if (tn + fp) > 0 else 0.0,
                "tp": int(tp),
                "fp": int(fp),
                "tn": int(tn),
                "fn": int(fn),
                "direction": direction,
            }
        )

    if not result_data:
        logger.info("Could not determine optimal thresholds.")
        return pd.DataFrame()
    return (
        pd.DataFrame(result_data)
        .sort_values("balanced_accuracy", ascending=False, kind="mergesort")
        .reset_index(drop=True)
    )
