"""Tests for DataLoader and the probe/sample shaping helpers."""

import numpy as np
import pandas as pd
import pytest

from hcc_biomarkers.core.data_loader import DataLoader
from hcc_biomarkers.core.utils import align_samples, collapse_probes, resolve_workers


@pytest.fixture
def raw_dir(monkeypatch, tmp_path):
    monkeypatch.setenv("HCC_BIOMARKERS_PATHS_DATA_DIR", str(tmp_path))
    raw = tmp_path / "raw"
    raw.mkdir()
    return raw


def _write_inputs(raw_dir, with_annotation: bool = True) -> None:
    pd.DataFrame(
        {
            "ID_REF": ["p1", "p2", "p3", "p4"],
            "GSM1": [5.0, 7.0, 1.0, 2.0],
            "GSM2": [6.0, 8.0, "n/a", 3.0],
            "GSM3": [4.0, 9.0, 1.5, 2.5],
        }
    ).to_csv(raw_dir / "GSE25097_expression.tsv", sep="\t", index=False)
    pd.DataFrame(
        {"sample": ["GSM1", "GSM2", "GSM3", "GSM9"], "group": ["tumor", "non_tumor ", "cirrhotic", "tumor"]}
    ).to_csv(raw_dir / "GSE25097_samples.tsv", sep="\t", index=False)
    if with_annotation:
        pd.DataFrame(
            {"probe_id": ["p1", "p2", "p3", "p4"], "gene_symbol": ["GPC3", "GPC3", "AFP", "---"]}
        ).to_csv(raw_dir / "GPL10687_annotation.tsv", sep="\t", index=False)


class TestDataLoader:
    def test_load_all_data(self, raw_dir):
        _write_inputs(raw_dir)
        loader = DataLoader()
        expression, groups, annotation = loader.load_all_data()
        assert expression.index.name == "gene_id"
        assert expression.shape == (4, 3)
        assert np.isnan(expression.loc["p3", "GSM2"])
        assert groups["GSM2"] == "non_tumor"
        assert annotation is not None
        stats = loader.get_basic_stats()
        assert stats["num_genes"] == 4
        assert stats["missing_fraction"] == pytest.approx(1 / 12)

    def test_annotation_is_optional(self, raw_dir):
        _write_inputs(raw_dir, with_annotation=False)
        assert DataLoader().load_probe_annotation() is None

    def test_missing_expression_file(self, raw_dir):
        with pytest.raises(FileNotFoundError, match="GSE25097_expression.tsv"):
            DataLoader().load_expression_data()

    def test_metadata_requires_columns(self, raw_dir):
        pd.DataFrame({"sample": ["GSM1"], "tissue": ["tumor"]}).to_csv(
            raw_dir / "GSE25097_samples.tsv", sep="\t", index=False
        )
        with pytest.raises(ValueError, match="group"):
            DataLoader().load_sample_metadata()


class TestShaping:
    def test_collapse_probes_keeps_highest_mean(self):
        expression = pd.DataFrame(
            {"S1": [5.0, 7.0, 1.0, 2.0], "S2": [6.0, 8.0, 1.0, 3.0]}, index=["p1", "p2", "p3", "p4"]
        )
        annotation = pd.DataFrame(
            {"probe_id": ["p1", "p2", "p3", "p4"], "gene_symbol": ["GPC3", "GPC3", "AFP", "---"]}
        )
        collapsed = collapse_probes(expression, annotation)
        assert collapsed.index.tolist() == ["GPC3", "AFP"]
        assert collapsed.loc["GPC3"].tolist() == [7.0, 8.0]
        assert collapsed.index.name == "gene_id"

    def test_align_samples_uses_shared_in_expression_order(self):
        expression = pd.DataFrame([[1.0, 2.0, 3.0]], columns=["C", "A", "B"], index=["G"])
        groups = pd.Series({"A": "tumor", "C": "non_tumor", "Z": "tumor"})
        aligned_expr, aligned_groups = align_samples(expression, groups)
        assert aligned_expr.columns.tolist() == ["C", "A"]
        assert aligned_groups.index.tolist() == ["C", "A"]

    @pytest.mark.parametrize(("n_jobs", "expected"), [(None, 1), (0, 1), (1, 1), (4, 4), (-2, 1)])
    def test_resolve_workers(self, monkeypatch, n_jobs, expected):
        monkeypatch.delenv("HCC_BIOMARKERS_PERFORMANCE_MAX_CPU_CORES", raising=False)
        assert resolve_workers(n_jobs) == expected
