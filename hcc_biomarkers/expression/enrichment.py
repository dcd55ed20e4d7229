# hcc_biomarkers/expression/enrichment.py
"""Functional enrichment (GO / KEGG over-representation) of candidate genes.

The gene set databases live behind an `EnrichmentBackend`. The default
backend sends the gene list to Enrichr through gseapy.

Example:
    config = EnrichmentConfig(gene_sets=["KEGG_2021_Human"])
    tables = run_enrichment(candidates["gene_id"], config=config)
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol

import pandas as pd

from hcc_biomarkers.core.config import get_enrichment_config
from hcc_biomarkers.core.logging import setup_logging

logger = setup_logging(__name__)

ENRICHMENT_COLUMNS = ["gene_set", "term", "overlap", "p_value", "adj_p_value", "genes"]


@dataclass
class EnrichmentConfig:
    """
    Configuration for enrichment analysis.

    Attributes:
        gene_sets: Enrichr libraries to query
        organism: Organism understood by the backend
        adj_p_cutoff: Adjusted p-value threshold for reported terms
        min_genes: Minimum genes required to run analysis
    """

    gene_sets: list[str] = field(
        default_factory=lambda: ["GO_Biological_Process_2021", "KEGG_2021_Human"]
    )
    organism: str = "human"
    adj_p_cutoff: float = 0.05
    min_genes: int = 5

    @classmethod
    def from_config(cls) -> "EnrichmentConfig":
        config = get_enrichment_config()
        return cls(
            gene_sets=list(config["gene_sets"]),
            organism=config["organism"],
            adj_p_cutoff=config["adj_p_cutoff"],
            min_genes=config["min_genes"],
        )


class EnrichmentBackend(Protocol):
    """Protocol for enrichment analysis backends."""

    def enrich(self, genes: list[str], gene_set: str, organism: str) -> pd.DataFrame:
        """
        Run over-representation analysis of `genes` against one gene set library.

        Returns:
            DataFrame with the columns in ENRICHMENT_COLUMNS, one row per term.
        """
        ...


class EnrichrBackend:
    """Enrichr over-representation analysis through gseapy."""

    def enrich(self, genes: list[str], gene_set: str, organism: str) -> pd.DataFrame:
        import gseapy as gp

        enr = gp.enrichr(
            gene_list=genes,
            gene_sets=gene_set,
            organism=organism,
            outdir=None,
            no_plot=True,
        )
        res = enr.results
        if res is None or res.empty:
            return pd.DataFrame(columns=ENRICHMENT_COLUMNS)
        return pd.DataFrame(
            {
                "gene_set": gene_set,
                "term": res["Term"],
                "overlap": res["Overlap"],
                "p_value": res["P-value"],
                "adj_p_value": res["Adjusted P-value"],
                "genes": res["Genes"],
            },
            columns=ENRICHMENT_COLUMNS,
        )


def run_enrichment(
    genes: Iterable[str],
    backend: EnrichmentBackend | None = None,
    config: EnrichmentConfig | None = None,
) -> dict[str, pd.DataFrame]:
    """Query each configured gene set library and keep the significant terms.

    Returns:
        Mapping of library name to its significant terms, sorted by adjusted
        p-value. Libraries that fail are logged and left out.
    """
    config = config or EnrichmentConfig.from_config()
    backend = backend or EnrichrBackend()
    gene_list = list(dict.fromkeys(str(g) for g in genes if pd.notna(g) and str(g)))

    if len(gene_list) < config.min_genes:
        logger.warning(
            f"Only {len(gene_list)} genes supplied (minimum {config.min_genes}); skipping enrichment."
        )
        return {}

    results: dict[str, pd.DataFrame] = {}
    for gene_set in config.gene_sets:
        logger.info(f"Enrichment: {len(gene_list)} genes against {gene_set}...")
        try:
            table = backend.enrich(gene_list, gene_set, config.organism)
        except Exception as e:
            logger.exception(f"Enrichment against {gene_set} failed: {e}")
            continue
        significant = (
            table[table["adj_p_value"] < config.adj_p_cutoff]
            .sort_values("adj_p_value", kind="mergesort")
            .reset_index(drop=True)
        )
        logger.info(f"  {gene_set}: {len(significant)} terms with adj.P < {config.adj_p_cutoff}")
        results[gene_set] = significant
    return results
