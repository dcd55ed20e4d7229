"""Tests for AUC-based gene ranking."""

import threading

import numpy as np
import pandas as pd
import pytest

from hcc_biomarkers.core.exceptions import InvalidInputError
from hcc_biomarkers.markers import ranking as ranking_module
from hcc_biomarkers.markers.ranking import as_expression_frame, rank_genes


def _make_random_matrix(n_genes: int = 60, n_samples: int = 16, seed: int = 11) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    return pd.DataFrame(
        rng.normal(size=(n_genes, n_samples)),
        index=[f"G{i}" for i in range(n_genes)],
        columns=[f"S{j}" for j in range(n_samples)],
    )


class TestRankGenes:
    def test_orders_by_descending_auc(self, small_matrix, labels):
        result = rank_genes(small_matrix, labels)
        assert result.top_genes() == ["GeneA", "GeneB", "GeneC"]
        assert [s.auc for s in result.ranked] == pytest.approx([1.0, 7 / 9, 0.0])
        assert not result.cancelled
        assert result.n_evaluated == 3

    def test_mapping_input(self):
        matrix = {"GeneA": [1.0, 2.0, 3.0, 4.0], "GeneB": [4.0, 3.0, 2.0, 1.0]}
        result = rank_genes(matrix, [0, 0, 1, 1])
        assert result.top_genes() == ["GeneA", "GeneB"]
        assert result.ranked[0].auc == 1.0
        assert result.ranked[0].n_case == 2
        assert result.ranked[0].n_control == 2

    def test_ties_keep_input_order(self):
        matrix = {
            "Zeta": [1.0, 2.0, 3.0, 4.0],
            "Alpha": [1.0, 2.0, 3.0, 4.0],
            "Mid": [4.0, 3.0, 2.0, 1.0],
            "Beta": [10.0, 20.0, 30.0, 40.0],
        }
        result = rank_genes(matrix, [0, 0, 1, 1])
        assert result.top_genes() == ["Zeta", "Alpha", "Beta", "Mid"]

    def test_separating_gene_above_constant_gene(self):
        matrix = {"GeneA": [1, 2, 3, 10, 11, 12], "GeneB": [5] * 6}
        result = rank_genes(matrix, [0, 0, 0, 1, 1, 1])
        assert [(s.gene_id, s.auc) for s in result.ranked] == [("GeneA", 1.0), ("GeneB", 0.5)]
        assert result.diagnostics == []

    def test_top_n_truncates(self, small_matrix, labels):
        result = rank_genes(small_matrix, labels, top_n=2)
        assert result.top_genes() == ["GeneA", "GeneB"]
        assert result.top_genes(1) == ["GeneA"]

    def test_top_n_larger_than_gene_count(self, small_matrix, labels):
        assert len(rank_genes(small_matrix, labels, top_n=100).ranked) == 3

    def test_missing_genes_reported_as_diagnostics(self, labels):
        matrix = pd.DataFrame(
            {
                "Good": [9.0, 8.0, 7.0, 3.0, 2.0, 1.0],
                "Empty": [np.nan] * 6,
                "NoCase": [np.nan, np.nan, np.nan, 1.0, 2.0, 3.0],
            }
        ).T
        result = rank_genes(matrix, labels)
        assert result.top_genes() == ["Good"]
        reasons = {d.gene_id: d.reason for d in result.diagnostics}
        assert reasons == {"Empty": "all_missing", "NoCase": "degenerate"}
        assert result.n_evaluated == 3
        assert list(result.diagnostics_frame().columns) == ["gene_id", "reason", "detail"]

    def test_partially_missing_gene_uses_remaining_pairs(self, labels):
        matrix = {"G": [9.0, np.nan, 7.0, 3.0, np.nan, 1.0]}
        score = rank_genes(matrix, labels).ranked[0]
        assert score.auc == 1.0
        assert (score.n_case, score.n_control) == (2, 2)

    def test_threaded_matches_sequential(self):
        matrix = _make_random_matrix()
        labels = np.array([0, 1] * 8)
        sequential = rank_genes(matrix, labels, n_jobs=1)
        threaded = rank_genes(matrix, labels, n_jobs=4)
        assert threaded.ranked == sequential.ranked

    def test_cancel_before_start_returns_empty_partial(self, small_matrix, labels):
        event = threading.Event()
        event.set()
        result = rank_genes(small_matrix, labels, cancel_event=event)
        assert result.cancelled
        assert result.ranked == []
        assert result.n_evaluated == 0

    def test_cancel_mid_pass_keeps_scored_genes(self, monkeypatch):
        matrix = _make_random_matrix(n_genes=10)
        labels = np.array([0, 1] * 8)
        event = threading.Event()
        scored = []
        score_gene = ranking_module._score_gene

        def score_then_cancel(gene_id, values, gene_labels):
            scored.append(gene_id)
            if len(scored) == 4:
                event.set()
            return score_gene(gene_id, values, gene_labels)

        monkeypatch.setattr(ranking_module, "_score_gene", score_then_cancel)
        result = rank_genes(matrix, labels, n_jobs=1, cancel_event=event)
        assert result.cancelled
        assert result.n_evaluated == 4
        assert sorted(result.top_genes()) == ["G0", "G1", "G2", "G3"]

    def test_to_frame_has_one_based_rank(self, small_matrix, labels):
        frame = rank_genes(small_matrix, labels).to_frame()
        assert list(frame.columns) == ["rank", "gene_id", "auc", "n_case", "n_control"]
        assert frame["rank"].tolist() == [1, 2, 3]


class TestRankGenesErrors:
    def test_single_class_labels(self, small_matrix):
        with pytest.raises(InvalidInputError):
            rank_genes(small_matrix, [1] * 6)

    def test_label_length_mismatch(self, small_matrix):
        with pytest.raises(InvalidInputError):
            rank_genes(small_matrix, [1, 0, 1])

    def test_invalid_top_n(self, small_matrix, labels):
        with pytest.raises(InvalidInputError):
            rank_genes(small_matrix, labels, top_n=0)

    def test_empty_matrix(self):
        with pytest.raises(InvalidInputError):
            rank_genes(pd.DataFrame(), [])

    def test_ragged_mapping(self):
        with pytest.raises(InvalidInputError, match="differ in length"):
            as_expression_frame({"A": [1.0, 2.0], "B": [1.0]})

    def test_duplicated_gene_ids(self):
        frame = pd.DataFrame([[1.0, 2.0], [3.0, 4.0]], index=["A", "A"])
        with pytest.raises(InvalidInputError, match="unique"):
            as_expression_frame(frame)

    def test_non_numeric_values(self):
        with pytest.raises(InvalidInputError, match="non-numeric"):
            as_expression_frame({"A": ["x", "y"]})

    def test_unsupported_type(self):
        with pytest.raises(InvalidInputError):
            as_expression_frame([[1.0, 2.0]])
