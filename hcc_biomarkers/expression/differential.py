# hcc_biomarkers/expression/differential.py
"""Per-gene linear models and contrasts between sample groups.

Each gene is fitted with an ordinary least squares model on a cell-means
design (one indicator column per sample group, no intercept), so all groups
contribute to the residual variance. The requested contrast is then tested
with a t-test on the fitted group means, and p-values are adjusted with
Benjamini-Hochberg across genes.
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd
import statsmodels.api as sm
from statsmodels.stats.multitest import multipletests

from hcc_biomarkers.core.config import SAMPLE_GROUPS, get_differential_expression_config
from hcc_biomarkers.core.exceptions import InvalidInputError
from hcc_biomarkers.core.logging import setup_logging

logger = setup_logging(__name__)

DE_COLUMNS = ["gene_id", "log_fc", "ave_expr", "t_stat", "p_value", "adj_p_value"]


@dataclass(frozen=True)
class Contrast:
    """Case minus control comparison, e.g. tumor vs adjacent non-tumor tissue."""

    case: str = "tumor"
    control: str = "non_tumor"

    @property
    def name(self) -> str:
        return f"{self.case}-{self.control}"

    @classmethod
    def from_config(cls) -> "Contrast":
        config = get_differential_expression_config()
        return cls(case=config["case_group"], control=config["control_group"])


def _aligned_groups(expression: pd.DataFrame, groups: pd.Series) -> pd.Series:
    missing = [s for s in expression.columns if s not in groups.index]
    if missing:
        msg = f"{len(missing)} expression samples have no group: {missing[:5]}"
        raise InvalidInputError(msg)
    return groups.loc[expression.columns].astype(str)


def _group_levels(groups: pd.Series) -> list[str]:
    present = set(groups.unique())
    known = [g for g in SAMPLE_GROUPS if g in present]
    return known + sorted(present - set(known))


def fit_linear_models(
    expression: pd.DataFrame,
    groups: pd.Series,
    contrast: Contrast | None = None,
) -> pd.DataFrame:
    """Fit one OLS model per gene and test the contrast.

    Args:
        expression: Log-scale expression, genes x samples.
        groups: Sample group per sample id (must cover every expression column).
        contrast: Groups to compare; defaults to the configured contrast.

    Returns:
        DataFrame with columns gene_id, log_fc, ave_expr, t_stat, p_value,
        adj_p_value, sorted by p_value. Genes that cannot be fitted keep NaN
        statistics and sort last.
    """
    contrast = contrast or Contrast.from_config()
    if expression.shape[0] == 0 or expression.shape[1] == 0:
        msg = "Expression matrix is empty."
        raise InvalidInputError(msg)
    sample_groups = _aligned_groups(expression, groups)
    levels = _group_levels(sample_groups)
    for group in (contrast.case, contrast.control):
        if group not in levels:
            msg = f"Contrast group '{group}' has no samples; available groups: {levels}"
            raise InvalidInputError(msg)

    design = pd.get_dummies(sample_groups).reindex(columns=levels).astype(float).to_numpy()
    contrast_vector = np.zeros(len(levels))
    contrast_vector[levels.index(contrast.case)] = 1.0
    contrast_vector[levels.index(contrast.control)] = -1.0
    case_col, control_col = levels.index(contrast.case), levels.index(contrast.control)

    logger.info(
        f"Fitting linear models for {expression.shape[0]} genes, contrast {contrast.name}, "
        f"groups={sample_groups.value_counts().to_dict()}"
    )

    values = expression.to_numpy(dtype=float)
    records = []
    n_unfitted = 0
    for row, gene_id in enumerate(expression.index):
        y = values[row]
        usable = ~np.isnan(y)
        record = {
            "gene_id": gene_id,
            "log_fc": np.nan,
            "ave_expr": float(np.mean(y[usable])) if usable.any() else np.nan,
            "t_stat": np.nan,
            "p_value": np.nan,
        }
        x = design[usable]
        observed_cols = x.sum(axis=0) > 0
        df_resid = int(usable.sum()) - int(observed_cols.sum())
        if not (observed_cols[case_col] and observed_cols[control_col]) or df_resid < 1:
            logger.debug(f"Gene {gene_id}: not enough observations to test {contrast.name}.")
            n_unfitted += 1
            records.append(record)
            continue

        fit = sm.OLS(y[usable], x[:, observed_cols]).fit()
        if not fit.scale > 0:
            logger.debug(f"Gene {gene_id}: zero residual variance; contrast not tested.")
            n_unfitted += 1
            records.append(record)
            continue
        test = fit.t_test(contrast_vector[observed_cols])
        record["log_fc"] = float(np.squeeze(test.effect))
        record["t_stat"] = float(np.squeeze(test.tvalue))
        record["p_value"] = float(np.squeeze(test.pvalue))
        records.append(record)

        if (row + 1) % 5000 == 0:
            logger.info(f"  Linear model progress: {row + 1}/{expression.shape[0]}...")

    table = pd.DataFrame(records, columns=DE_COLUMNS[:-1])
    table["adj_p_value"] = np.nan
    tested = table["p_value"].notna()
    if tested.any():
        table.loc[tested, "adj_p_value"] = multipletests(
            table.loc[tested, "p_value"], method="fdr_bh"
        )[1]
    if n_unfitted:
        logger.warning(f"{n_unfitted} genes could not be tested for {contrast.name}.")

    return table.sort_values("p_value", kind="mergesort", na_position="last").reset_index(drop=True)


def select_candidates(
    de_table: pd.DataFrame,
    adj_p_cutoff: float | None = None,
    log_fc_cutoff: float | None = None,
) -> pd.DataFrame:
    """Keep genes with adj_p_value < cutoff and |log_fc| >= cutoff, tagging direction."""
    config = get_differential_expression_config()
    adj_p_cutoff = config["adj_p_cutoff"] if adj_p_cutoff is None else adj_p_cutoff
    log_fc_cutoff = config["log_fc_cutoff"] if log_fc_cutoff is None else log_fc_cutoff

    mask = (de_table["adj_p_value"] < adj_p_cutoff) & (de_table["log_fc"].abs() >= log_fc_cutoff)
    candidates = de_table[mask].copy()
    candidates["direction"] = np.where(candidates["log_fc"] > 0, "up", "down")
    logger.info(
        f"Selected {len(candidates)} candidate genes (adj.P < {adj_p_cutoff}, |logFC| >= {log_fc_cutoff}): "
        f"{int((candidates['direction'] == 'up').sum())} up, {int((candidates['direction'] == 'down').sum())} down"
    )
    return candidates.reset_index(drop=True)


def binary_subset(
    expression: pd.DataFrame,
    groups: pd.Series,
    contrast: Contrast | None = None,
) -> tuple[pd.DataFrame, np.ndarray]:
    """Restrict to case and control samples and build the aligned 0/1 labels.

    Samples from any other group (e.g. cirrhotic or healthy liver) are left out.
    """
    contrast = contrast or Contrast.from_config()
    sample_groups = _aligned_groups(expression, groups)
    keep = sample_groups.isin([contrast.case, contrast.control]).to_numpy()
    subset_groups = sample_groups[keep]
    labels = (subset_groups == contrast.case).astype(int).to_numpy()
    if labels.sum() == 0 or labels.sum() == labels.shape[0]:
        msg = (
            f"Contrast {contrast.name} needs samples from both groups; "
            f"found {int(labels.sum())} {contrast.case} and {int((labels == 0).sum())} {contrast.control}."
        )
        raise InvalidInputError(msg)
    logger.info(
        f"Binary subset {contrast.name}: {int(labels.sum())} case, {int((labels == 0).sum())} control, "
        f"{int((~keep).sum())} other samples excluded"
    )
    return expression.loc[:, keep], labels
