# hcc_biomarkers/core/data_loader.py
"""Data loading utilities for the GSE25097 expression data."""

import logging
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from hcc_biomarkers.core.config import SAMPLE_GROUPS, get_file_path

logger = logging.getLogger(__name__)


class DataLoader:
    """Loads the normalized expression matrix, sample groups and probe annotation.

    All three inputs are local tab-separated files whose locations come from
    the files section of the configuration.
    """

    def __init__(self):
        """Initialize DataLoader."""
        self.expression_data: pd.DataFrame | None = None
        self.sample_groups: pd.Series | None = None
        self.probe_annotation: pd.DataFrame | None = None

    def _read_table(self, file_key: str, label: str) -> tuple[pd.DataFrame, Path]:
        path: Path | None = None
        try:
            path = get_file_path(file_key)
            table = pd.read_csv(path, sep="\t")
        except FileNotFoundError:
            msg = f"{label} file not found: {path}"
            logger.error(msg)
            raise FileNotFoundError(msg) from None
        except (pd.errors.EmptyDataError, pd.errors.ParserError) as e:
            msg = f"{label} file is empty or invalid: {path}. Error: {e!s}"
            logger.error(msg)
            raise ValueError(msg) from e
        if table.empty:
            logger.warning(f"{label} file is empty: {path}")
        return table, path

    def load_expression_data(self) -> pd.DataFrame:
        """Load the expression matrix (probes/genes x samples) from the configured file."""
        logger.info("Attempting to load expression data...")
        raw, path = self._read_table("expression", "Expression data")
        if raw.shape[1] < 2:
            msg = f"Expression data at '{path}' needs an ID column and at least one sample column."
            logger.error(msg)
            raise ValueError(msg)

        id_col = raw.columns[0]
        expression = raw.set_index(id_col)
        expression.index = expression.index.astype(str)
        expression.index.name = "gene_id"
        expression = expression.apply(pd.to_numeric, errors="coerce")

        n_missing = int(expression.isna().sum().sum())
        if n_missing:
            logger.warning(f"Expression data contains {n_missing} missing or non-numeric values.")
        logger.info(
            f"Loaded expression data: {expression.shape[0]} rows x {expression.shape[1]} samples from {path}"
        )
        self.expression_data = expression
        return expression

    def load_sample_metadata(self) -> pd.Series:
        """Load sample groups as a Series indexed by sample id."""
        logger.info("Attempting to load sample metadata...")
        raw, path = self._read_table("metadata", "Sample metadata")
        missing_cols = [c for c in ("sample", "group") if c not in raw.columns]
        if missing_cols:
            msg = f"Sample metadata '{path}' missing required columns: {missing_cols}"
            logger.error(msg)
            raise ValueError(msg)

        groups = raw.set_index(raw["sample"].astype(str))["group"].astype(str).str.strip()
        groups.index.name = "sample"
        unknown = sorted(set(groups.unique()) - set(SAMPLE_GROUPS))
        if unknown:
            logger.warning(f"Sample metadata contains groups outside {SAMPLE_GROUPS}: {unknown}")
        logger.info(
            f"Loaded sample metadata: {len(groups)} samples, groups={groups.value_counts().to_dict()}"
        )
        self.sample_groups = groups
        return groups

    def load_probe_annotation(self) -> pd.DataFrame | None:
        """Load the optional probe -> gene symbol table; returns None when absent."""
        try:
            raw, path = self._read_table("annotation", "Probe annotation")
        except FileNotFoundError:
            logger.info("No probe annotation file found; expression rows are used as gene ids.")
            return None
        missing_cols = [c for c in ("probe_id", "gene_symbol") if c not in raw.columns]
        if missing_cols:
            msg = f"Probe annotation '{path}' missing required columns: {missing_cols}"
            logger.error(msg)
            raise ValueError(msg)
        self.probe_annotation = raw[["probe_id", "gene_symbol"]].astype(str)
        logger.info(f"Loaded probe annotation: {len(self.probe_annotation)} probes from {path}")
        return self.probe_annotation

    def load_all_data(self) -> tuple[pd.DataFrame, pd.Series, pd.DataFrame | None]:
        """Load expression, sample groups and (optional) probe annotation."""
        logger.info("Loading all primary data (Expression, Samples, Annotation)...")
        expression = self.load_expression_data()
        groups = self.load_sample_metadata()
        annotation = self.load_probe_annotation()
        return expression, groups, annotation

    def get_basic_stats(self) -> dict[str, Any]:
        """Basic statistics about the loaded data, for the run summary."""
        stats: dict[str, Any] = {"num_genes": 0, "num_samples": 0, "group_counts": {}}
        if self.expression_data is not None:
            values = self.expression_data.to_numpy(dtype=float)
            stats["num_genes"] = self.expression_data.shape[0]
            stats["num_samples"] = self.expression_data.shape[1]
            stats["mean_expression"] = float(np.nanmean(values)) if values.size else 0.0
            stats["missing_fraction"] = float(np.isnan(values).mean()) if values.size else 0.0
        if self.sample_groups is not None:
            stats["group_counts"] = self.sample_groups.value_counts().to_dict()
        logger.debug(f"Basic stats calculated: {stats}")
        return stats
