# hcc_biomarkers/core/utils.py
"""Utility functions for shaping expression data before analysis."""

import logging

import pandas as pd

from hcc_biomarkers.core.config import get_performance_config

logger = logging.getLogger(__name__)


def collapse_probes(expression: pd.DataFrame, annotation: pd.DataFrame) -> pd.DataFrame:
    """Map probe rows to gene symbols, keeping one probe per symbol.

    Probes without a symbol are dropped. When several probes map to the same
    symbol the one with the highest mean expression is kept.

    Args:
        expression: Expression DataFrame indexed by probe id.
        annotation: DataFrame with 'probe_id' and 'gene_symbol' columns.

    Returns:
        Expression DataFrame indexed by unique gene symbol.
    """
    symbol_map = (
        annotation.dropna(subset=["probe_id", "gene_symbol"])
        .drop_duplicates(subset=["probe_id"], keep="first")
        .set_index("probe_id")["gene_symbol"]
    )
    symbol_map = symbol_map[~symbol_map.isin(["", "nan", "---"])]

    symbols = expression.index.to_series().map(symbol_map)
    annotated = expression[symbols.notna().to_numpy()].copy()
    symbols = symbols.dropna()
    n_dropped = expression.shape[0] - annotated.shape[0]
    if n_dropped:
        logger.info(f"Dropped {n_dropped} probes without a gene symbol.")

    # Highest mean expression wins among probes sharing a symbol
    order = annotated.mean(axis=1, skipna=True).sort_values(ascending=False, kind="mergesort").index
    annotated = annotated.loc[order]
    annotated.index = symbols.loc[order].to_numpy()
    collapsed = annotated[~annotated.index.duplicated(keep="first")]
    # Restore the order in which symbols first appear in the input
    collapsed = collapsed.loc[pd.unique(symbols.to_numpy())]
    collapsed.index.name = "gene_id"

    logger.info(f"Collapsed {annotated.shape[0]} annotated probes to {collapsed.shape[0]} genes.")
    return collapsed


def align_samples(
    expression: pd.DataFrame, groups: pd.Series
) -> tuple[pd.DataFrame, pd.Series]:
    """Restrict expression columns and sample groups to their shared samples.

    Sample order follows the expression matrix.
    """
    shared = [s for s in expression.columns if s in groups.index]
    dropped_expr = expression.shape[1] - len(shared)
    dropped_meta = len(groups) - len(shared)
    if dropped_expr:
        logger.warning(f"{dropped_expr} expression samples have no group annotation; dropped.")
    if dropped_meta:
        logger.warning(f"{dropped_meta} annotated samples are absent from the expression data.")
    return expression[shared], groups.loc[shared]


def resolve_workers(n_jobs: int | None) -> int:
    """Number of worker threads to use; None falls back to the performance config."""
    if n_jobs is None:
        n_jobs = get_performance_config().get("max_cpu_cores", 0)
    if n_jobs is None or n_jobs <= 1:
        return 1
    return int(n_jobs)
