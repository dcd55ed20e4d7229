"""Shared fixtures for the hcc_biomarkers tests."""

import os

# Module-level loggers are created on import; keep them off the filesystem.
os.environ["HCC_BIOMARKERS_LOGGING_FILE_LOGGING"] = "false"

import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def labels() -> np.ndarray:
    """Three case samples followed by three controls."""
    return np.array([1, 1, 1, 0, 0, 0])


@pytest.fixture
def small_matrix() -> pd.DataFrame:
    """GeneA separates the classes perfectly, GeneB partially, GeneC inversely."""
    return pd.DataFrame(
        {
            "GeneA": [9.0, 8.0, 7.0, 3.0, 2.0, 1.0],
            "GeneB": [5.0, 2.0, 6.0, 4.0, 1.0, 3.0],
            "GeneC": [1.0, 2.0, 3.0, 7.0, 8.0, 9.0],
        },
        index=[f"S{i}" for i in range(6)],
    ).T


@pytest.fixture
def gse_like() -> tuple[pd.DataFrame, pd.Series]:
    """Genes x samples with all four GSE25097 groups and one up, one down, one flat gene."""
    rng = np.random.default_rng(7)
    groups = pd.Series(
        ["healthy"] * 4 + ["cirrhotic"] * 4 + ["non_tumor"] * 6 + ["tumor"] * 6,
        index=[f"GSM{i:03d}" for i in range(20)],
        name="group",
    )
    is_tumor = (groups == "tumor").to_numpy()
    noise = rng.normal(0.0, 0.2, size=(3, 20))
    expression = pd.DataFrame(
        np.vstack(
            [
                6.0 + 3.0 * is_tumor + noise[0],
                8.0 - 2.5 * is_tumor + noise[1],
                5.0 + noise[2],
            ]
        ),
        index=["GPC3", "CYP2E1", "ACTB"],
        columns=groups.index,
    )
    expression.index.name = "gene_id"
    return expression, groups
