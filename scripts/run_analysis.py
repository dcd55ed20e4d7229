#!/usr/bin/env python
# scripts/run_analysis.py

"""Main entry point for the HCC biomarker discovery pipeline (GSE25097)."""

import argparse
import functools
import logging
import os
import sys
import time
import tomllib
from collections.abc import Callable
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from hcc_biomarkers.core.config import (
    get_bootstrap_config,
    get_enrichment_config,
    get_path,
    get_ranking_config,
    setup_directories,
)
from hcc_biomarkers.core.data_loader import DataLoader
from hcc_biomarkers.core.exceptions import InvalidInputError
from hcc_biomarkers.core.logging import set_log_level, setup_logging
from hcc_biomarkers.core.utils import align_samples, collapse_probes
from hcc_biomarkers.expression.differential import (
    Contrast,
    binary_subset,
    fit_linear_models,
    select_candidates,
)
from hcc_biomarkers.expression.enrichment import run_enrichment
from hcc_biomarkers.markers.ranking import RankingResult, rank_genes
from hcc_biomarkers.markers.summary import validate_top_genes
from hcc_biomarkers.markers.thresholds import find_optimal_thresholds, roc_points

logger = setup_logging(__name__)
console = Console()

EXPERIMENTS_FILE = Path("experiments.toml")


# ===================================================
#  === Utility Functions ===
# ===================================================
def save_dataframe(
    df: pd.DataFrame | None, filename: str, output_dir: Path, index: bool = False
) -> None:
    """Saves a DataFrame to CSV, ensuring parent directory exists."""
    if df is None:
        logger.debug(f"Skipping save '{filename}': DataFrame is None.")
        return
    if df.empty:
        logger.info(f":cross_mark: Skipping save '{filename}': DataFrame is empty.")
        return

    filepath = output_dir / filename
    try:
        filepath.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(filepath, index=index)
        logger.info(f":floppy_disk: [green]Saved table:[/green] {filepath.resolve()}")
    except OSError as e:
        logger.exception(f":cross_mark: [bold red]Failed to save table '{filename}':[/] {e!s}")


def analysis_step(section_title: str) -> Callable[..., Any]:
    """Decorator using Rich for section headers and status."""

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            console.rule(f"[bold blue]:play_button: {section_title} [/]", style="blue")
            start_time = time.time()
            result = None
            success = True
            try:
                result = func(*args, **kwargs)
            except Exception:
                logger.exception(f"Step '{section_title}' encountered a critical error")
                success = False
            finally:
                elapsed = time.time() - start_time
                status_icon = ":white_check_mark:" if success else ":cross_mark:"
                status_color = "green" if success else "red"
                logger.info(
                    f"{status_icon} [{status_color}]Step '{section_title}' {'finished' if success else 'failed'} in {elapsed:.2f}s.[/{status_color}]"
                )
            return result if success else None

        return wrapper

    return decorator


# ===================================================
#  === Pipeline Steps ===
# ===================================================
@analysis_step("1. Loading Data")
def load_data() -> tuple[pd.DataFrame, pd.Series]:
    data_loader = DataLoader()
    expression, groups, annotation = data_loader.load_all_data()
    if annotation is not None:
        expression = collapse_probes(expression, annotation)
    raw_stats = data_loader.get_basic_stats()
    logger.info(
        f"Raw input: {raw_stats['num_genes']} rows x {raw_stats['num_samples']} samples "
        f"(missing fraction {raw_stats.get('missing_fraction', 0.0):.4f})"
    )
    expression, groups = align_samples(expression, groups)
    missing_fraction = float(expression.isna().to_numpy().mean()) if expression.size else 0.0
    logger.info(
        f"Analysis matrix: {expression.shape[0]} genes x {expression.shape[1]} samples "
        f"(missing fraction {missing_fraction:.4f})"
    )
    return expression, groups


@analysis_step("2. Differential Expression")
def run_differential_expression(
    expression: pd.DataFrame, groups: pd.Series, contrast: Contrast, tables_dir: Path
) -> tuple[pd.DataFrame, pd.DataFrame]:
    de_table = fit_linear_models(expression, groups, contrast)
    save_dataframe(de_table, "differential_expression.csv", tables_dir)
    candidates = select_candidates(de_table)
    save_dataframe(candidates, "candidate_genes.csv", tables_dir)
    return de_table, candidates


@analysis_step("3. Functional Enrichment")
def run_functional_enrichment(candidates: pd.DataFrame, tables_dir: Path) -> dict[str, pd.DataFrame]:
    results = run_enrichment(candidates["gene_id"])
    for gene_set, table in results.items():
        save_dataframe(table, f"enrichment_{gene_set}.csv", tables_dir)
    return results


@analysis_step("4. AUC Ranking")
def run_auc_ranking(
    matrix: pd.DataFrame, labels: np.ndarray, top_n: int, n_jobs: int | None, tables_dir: Path
) -> RankingResult:
    ranking = rank_genes(matrix, labels, top_n=top_n, n_jobs=n_jobs)
    save_dataframe(ranking.to_frame(), "gene_auc_ranking.csv", tables_dir)
    save_dataframe(ranking.diagnostics_frame(), "gene_auc_diagnostics.csv", tables_dir)

    top_to_show = ranking.ranked[: min(10, top_n)]
    if top_to_show:
        console.rule("[bold green]Top Genes by AUC[/]")
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Rank", style="dim", width=4)
        table.add_column("Gene", style="cyan", no_wrap=True)
        table.add_column("AUC", justify="right")
        table.add_column("Tumor n", justify="right", style="green")
        table.add_column("Control n", justify="right", style="yellow")
        for i, score in enumerate(top_to_show, 1):
            table.add_row(
                str(i), score.gene_id, f"{score.auc:.4f}", str(score.n_case), str(score.n_control)
            )
        console.print(table)
    return ranking


@analysis_step("5. Bootstrap Validation")
def run_bootstrap_validation(
    matrix: pd.DataFrame,
    labels: np.ndarray,
    ranking: RankingResult,
    iterations: int,
    seed: int,
    n_jobs: int | None,
    tables_dir: Path,
) -> pd.DataFrame:
    summary_df = validate_top_genes(
        matrix,
        labels,
        ranking,
        n_genes=get_ranking_config()["bootstrap_top_n"],
        iterations=iterations,
        seed=seed,
        n_jobs=n_jobs,
    )
    save_dataframe(summary_df, "bootstrap_auc_summary.csv", tables_dir)

    if not summary_df.empty:
        confidence = get_bootstrap_config()["confidence_level"]
        console.rule(f"[bold green]Bootstrap AUC ({iterations} resamples, {confidence:.0%} CI)[/]")
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Gene", style="cyan")
        table.add_column("AUC", justify="right")
        table.add_column("Mean", justify="right")
        table.add_column("SD", justify="right")
        table.add_column("CI", justify="right", style="green")
        table.add_column("Skipped", justify="right", style="yellow")
        for row in summary_df.itertuples(index=False):
            table.add_row(
                row.gene_id,
                f"{row.auc:.4f}",
                f"{row.boot_mean:.4f}",
                f"{row.boot_std:.4f}",
                f"[{row.ci_lower:.3f}, {row.ci_upper:.3f}]",
                str(row.n_skipped),
            )
        console.print(table)
    return summary_df


@analysis_step("6. Optimal Thresholds")
def run_thresholds(
    matrix: pd.DataFrame, labels: np.ndarray, ranking: RankingResult, tables_dir: Path
) -> pd.DataFrame:
    genes = ranking.top_genes(get_ranking_config()["bootstrap_top_n"])
    thresholds_df = find_optimal_thresholds(matrix, labels, genes)
    save_dataframe(thresholds_df, "optimal_thresholds.csv", tables_dir)

    curves = []
    for gene_id in genes:
        try:
            points = roc_points(matrix.loc[gene_id].to_numpy(), labels)
        except InvalidInputError as e:
            logger.warning(f"No ROC curve for {gene_id}: {e}")
            continue
        points.insert(0, "gene_id", gene_id)
        curves.append(points)
    if curves:
        save_dataframe(pd.concat(curves, ignore_index=True), "roc_curves.csv", tables_dir)
    return thresholds_df


def run_pipeline(args: argparse.Namespace) -> bool:
    """Runs all steps; returns False when any step failed."""
    setup_directories()
    tables_dir = get_path("tables_dir")
    ranking_cfg = get_ranking_config()
    bootstrap_cfg = get_bootstrap_config()
    contrast = Contrast.from_config()
    if args.case or args.control:
        contrast = Contrast(
            case=args.case or contrast.case, control=args.control or contrast.control
        )
    top_n = args.top_n or ranking_cfg["top_n"]
    iterations = args.iterations or bootstrap_cfg["iterations"]
    seed = args.seed if args.seed is not None else bootstrap_cfg["seed"]

    loaded = load_data()
    if loaded is None:
        return False
    expression, groups = loaded

    success = True
    de_outputs = run_differential_expression(expression, groups, contrast, tables_dir)
    if de_outputs is None:
        success = False
    elif args.skip_enrichment or not get_enrichment_config()["run_enrichment"]:
        logger.info("Skipping functional enrichment as per configuration/parameter.")
    else:
        _, candidates = de_outputs
        if run_functional_enrichment(candidates, tables_dir) is None:
            success = False

    try:
        matrix, labels = binary_subset(expression, groups, contrast)
    except ValueError:
        logger.exception(f"Cannot build the {contrast.name} subset for ranking.")
        return False

    ranking = run_auc_ranking(matrix, labels, top_n, args.jobs, tables_dir)
    if ranking is None:
        return False
    if run_bootstrap_validation(matrix, labels, ranking, iterations, seed, args.jobs, tables_dir) is None:
        success = False
    if run_thresholds(matrix, labels, ranking, tables_dir) is None:
        success = False
    return success


# ===================================================
#  === Experiments ===
# ===================================================
def _load_experiments() -> dict[str, Any] | None:
    if not EXPERIMENTS_FILE.exists():
        logger.error(f"Experiment config file not found: {EXPERIMENTS_FILE}")
        return None
    try:
        with open(EXPERIMENTS_FILE, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.exception(f"Error loading or parsing {EXPERIMENTS_FILE}: {e}")
        return None
    if "experiment" not in data:
        logger.error(f"'[experiment]' table not found in {EXPERIMENTS_FILE}")
        return None
    return data["experiment"]


def apply_experiment_config(exp_number: int) -> bool:
    """Exports the experiment's HCC_BIOMARKERS_* keys as environment overrides."""
    experiments = _load_experiments()
    if experiments is None:
        return False
    exp_config = experiments.get(str(exp_number))
    if exp_config is None:
        logger.error(f"Experiment '{exp_number}' not defined under [experiment] in {EXPERIMENTS_FILE}")
        return False

    logger.info(f"Experiment Description: {exp_config.get('description', 'N/A')}")
    for key, value in exp_config.items():
        if key.upper().startswith("HCC_BIOMARKERS"):
            value_str = ",".join(map(str, value)) if isinstance(value, list) else str(value)
            os.environ[key.upper()] = value_str
            logger.debug(f"  Override via experiment: {key.upper()}='{value_str}'")
    return True


def list_experiments() -> None:
    """Lists all available experiments from the experiments.toml file."""
    experiments = _load_experiments()
    if experiments is None:
        sys.exit(1)
    table = Table(title="Available Experiments", show_header=True, header_style="bold")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Description", style="white")
    for exp_id in sorted(experiments, key=lambda x: int(x) if x.isdigit() else float("inf")):
        table.add_row(exp_id, experiments[exp_id].get("description", "No description"))
    console.print(table)


# ===================================================
#  === Main Execution ===
# ===================================================
def main() -> None:
    logging.captureWarnings(True)
    parser = argparse.ArgumentParser(
        description="HCC biomarker discovery pipeline (GSE25097).",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--case", type=str, default=None, help="Case group of the contrast.")
    parser.add_argument("--control", type=str, default=None, help="Control group of the contrast.")
    parser.add_argument(
        "--top-n", type=int, metavar="N", default=None, help="Override number of ranked genes."
    )
    parser.add_argument(
        "--iterations", type=int, metavar="R", default=None, help="Override bootstrap iterations."
    )
    parser.add_argument("--seed", type=int, default=None, help="Override bootstrap seed.")
    parser.add_argument(
        "--jobs", type=int, default=None, help="Worker threads for ranking and bootstrap."
    )
    parser.add_argument(
        "--skip-enrichment", action="store_true", help="Skip the functional enrichment step."
    )
    parser.add_argument(
        "--experiment",
        type=int,
        metavar="N",
        default=None,
        help="Run predefined experiment N from experiments.toml (sets env vars).",
    )
    parser.add_argument(
        "--list-experiments",
        action="store_true",
        help="List all available predefined experiments from experiments.toml and exit.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable DEBUG level logging.")
    args = parser.parse_args()

    if args.list_experiments:
        list_experiments()
        sys.exit(0)

    if args.experiment is not None and not apply_experiment_config(args.experiment):
        logger.error(f"Failed to load or apply experiment {args.experiment}. Exiting.")
        sys.exit(1)

    if args.verbose:
        set_log_level(logging.DEBUG)
        logger.debug("Verbose logging enabled.")

    console.print(
        Panel("[bold yellow]HCC Biomarker Pipeline Initializing...[/]", border_style="yellow")
    )
    start_time = time.time()
    try:
        success = run_pipeline(args)
    except Exception as e:
        logger.critical(f":skull: Pipeline orchestration failed critically: {e}", exc_info=True)
        success = False

    elapsed = time.time() - start_time
    status = (
        "[bold green]Pipeline finished successfully[/]"
        if success
        else "[bold yellow]Pipeline finished with errors or skipped steps[/]"
    )
    console.print(
        Panel(
            f"{status}\nTotal execution time: {elapsed:.2f} seconds.",
            title="[bold]Pipeline Summary[/]",
            border_style="bold green" if success else "bold red",
        )
    )
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
