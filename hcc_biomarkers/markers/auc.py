# hcc_biomarkers/markers/auc.py
"""Area under the ROC curve from the Mann-Whitney U statistic.

AUC is the probability that a randomly drawn case sample has a higher
expression value than a randomly drawn control sample, with ties counting
one half. With midranks this is

    U   = R_case - n_case * (n_case + 1) / 2
    AUC = U / (n_case * n_control)

which is invariant to monotonic rescaling of the expression values.
"""

from collections.abc import Sequence

import numpy as np
from scipy.stats import rankdata

from hcc_biomarkers.core.exceptions import DegenerateResultError, InvalidInputError


def validate_labels(labels: Sequence[int] | np.ndarray, n_samples: int | None = None) -> np.ndarray:
    """Coerce labels to a 1-D int array of 0 (control) / 1 (case).

    Raises:
        InvalidInputError: If the labels are not one-dimensional, not binary,
            or their length differs from `n_samples`.
    """
    label_array = np.asarray(labels)
    if label_array.ndim != 1:
        msg = f"Labels must be one-dimensional, got shape {label_array.shape}."
        raise InvalidInputError(msg)
    if n_samples is not None and label_array.shape[0] != n_samples:
        msg = f"Label vector has length {label_array.shape[0]} but there are {n_samples} samples."
        raise InvalidInputError(msg)
    try:
        numeric = label_array.astype(float)
    except (TypeError, ValueError) as e:
        msg = f"Labels must be 0/1 values: {e}"
        raise InvalidInputError(msg) from e
    if np.isnan(numeric).any() or not np.isin(numeric, (0.0, 1.0)).all():
        bad = sorted({str(v) for v in label_array[~np.isin(numeric, (0.0, 1.0))]})
        msg = f"Labels must be 0 (control) or 1 (case); found {bad}."
        raise InvalidInputError(msg)
    return numeric.astype(int)


def has_both_classes(labels: np.ndarray) -> bool:
    """True when at least one control (0) and one case (1) label are present."""
    n_case = int(labels.sum())
    return 0 < n_case < labels.shape[0]


def mann_whitney_auc(values: np.ndarray, labels: np.ndarray) -> float:
    """AUC of already-cleaned values (no missing entries) against 0/1 labels."""
    n_case = int(labels.sum())
    n_control = labels.shape[0] - n_case
    if n_case == 0 or n_control == 0:
        msg = f"AUC undefined: {n_case} usable case and {n_control} usable control observations."
        raise DegenerateResultError(msg)
    ranks = rankdata(values, method="average")
    u_statistic = ranks[labels == 1].sum() - n_case * (n_case + 1) / 2.0
    return float(u_statistic / (n_case * n_control))


def compute_auc(expression: Sequence[float] | np.ndarray, labels: Sequence[int] | np.ndarray) -> float:
    """AUC of one expression vector against binary labels.

    Missing values are excluded pairwise: a missing measurement removes only
    its own (value, label) pair, so only that label's class shrinks.

    Raises:
        InvalidInputError: On length mismatch or non-binary labels.
        DegenerateResultError: If a class has no usable observation.
    """
    try:
        values = np.asarray(expression, dtype=float)
    except (TypeError, ValueError) as e:
        msg = f"Expression values must be numeric: {e}"
        raise InvalidInputError(msg) from e
    if values.ndim != 1:
        msg = f"Expression vector must be one-dimensional, got shape {values.shape}."
        raise InvalidInputError(msg)
    label_array = validate_labels(labels, values.shape[0])

    usable = ~np.isnan(values)
    return mann_whitney_auc(values[usable], label_array[usable])
