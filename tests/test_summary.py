"""Tests for bootstrap summaries and the top-gene validation table."""

import numpy as np
import pandas as pd
import pytest

from hcc_biomarkers.core.exceptions import DegenerateResultError, InvalidInputError
from hcc_biomarkers.markers.bootstrap import BootstrapResult
from hcc_biomarkers.markers.ranking import GeneScore, RankingResult, rank_genes
from hcc_biomarkers.markers.summary import (
    SUMMARY_COLUMNS,
    summarize_bootstrap,
    summarize_distribution,
    validate_top_genes,
)


class TestSummarizeDistribution:
    def test_basic_statistics(self):
        values = np.linspace(0.5, 1.0, 101)
        summary = summarize_distribution(values, confidence_level=0.9)
        assert summary.mean == pytest.approx(0.75)
        assert summary.median == pytest.approx(0.75)
        assert summary.std == pytest.approx(np.std(values, ddof=1))
        assert summary.ci_lower == pytest.approx(np.percentile(values, 5))
        assert summary.ci_upper == pytest.approx(np.percentile(values, 95))
        assert summary.n_valid == 101

    def test_interval_brackets_median(self):
        values = np.random.default_rng(1).uniform(0.6, 0.9, size=500)
        summary = summarize_distribution(values, confidence_level=0.95)
        assert summary.ci_lower <= summary.median <= summary.ci_upper

    def test_single_value_has_zero_spread(self):
        summary = summarize_distribution([0.8], confidence_level=0.95)
        assert summary.std == 0.0
        assert summary.ci_lower == summary.ci_upper == 0.8

    def test_confidence_level_from_config(self, monkeypatch):
        monkeypatch.setenv("HCC_BIOMARKERS_BOOTSTRAP_CONFIDENCE_LEVEL", "0.8")
        assert summarize_distribution([0.1, 0.2, 0.3]).confidence_level == 0.8

    @pytest.mark.parametrize("level", [0.0, 1.0, -0.1, 1.5])
    def test_rejects_bad_confidence_level(self, level):
        with pytest.raises(InvalidInputError):
            summarize_distribution([0.5, 0.6], confidence_level=level)

    def test_empty_distribution_is_degenerate(self):
        with pytest.raises(DegenerateResultError):
            summarize_distribution([], confidence_level=0.95)

    def test_summarize_bootstrap_carries_skipped(self):
        result = BootstrapResult(
            distribution=np.array([0.7, 0.8, 0.9]), n_iterations=5, n_skipped=2, seed=0
        )
        summary = summarize_bootstrap(result, 0.95)
        assert summary.n_skipped == 2
        assert summary.to_dict()["n_valid"] == 3


class TestValidateTopGenes:
    def test_table_for_top_genes(self, small_matrix, labels):
        ranking = rank_genes(small_matrix, labels)
        table = validate_top_genes(
            small_matrix, labels, ranking, n_genes=2, iterations=50, seed=1, confidence_level=0.95
        )
        assert list(table.columns) == SUMMARY_COLUMNS
        assert table["gene_id"].tolist() == ["GeneA", "GeneB"]
        assert (table["n_valid"] + table["n_skipped"] == 50).all()
        gene_a = table.iloc[0]
        assert gene_a["boot_mean"] == pytest.approx(1.0)
        assert gene_a["ci_lower"] == pytest.approx(1.0)

    def test_degenerate_gene_reported_with_nan(self):
        # Case values are all missing, so no resample can hold both classes
        matrix = pd.DataFrame({"S0": [np.nan], "S1": [np.nan], "S2": [1.0], "S3": [2.0]}, index=["G"])
        ranking = RankingResult(ranked=[GeneScore("G", 0.5, 2, 2)], n_evaluated=1)
        table = validate_top_genes(matrix, [1, 1, 0, 0], ranking, iterations=20, seed=0)
        row = table.iloc[0]
        assert np.isnan(row["boot_mean"])
        assert row["n_valid"] == 0
        assert row["n_skipped"] == 20
