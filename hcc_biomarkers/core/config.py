# hcc_biomarkers/core/config.py
"""Configuration management for the HCC biomarker pipeline."""

import logging
import os
from pathlib import Path
from typing import Any, Union

logger = logging.getLogger(__name__)

ENV_PREFIX = "HCC_BIOMARKERS"

# ===================================================
#  === Dataset Constants ===
# ===================================================
# Sample groups of GSE25097 (Affymetrix Rosetta/Merck Human RSTA array)
SAMPLE_GROUPS: tuple[str, ...] = ("healthy", "cirrhotic", "non_tumor", "tumor")

# ===================================================
#  === Type Conversion Helper ===
# ===================================================
ConfigValueType = Union[bool, int, float, str, list[str]]


def _convert_value(value: str, target_type: type) -> ConfigValueType:
    """Convert a string value to the specified type."""
    value_stripped = value.strip()
    try:
        if target_type is bool:
            return value_stripped.lower() in ("true", "yes", "1", "t", "y")
        if target_type is int:
            return int(value_stripped)
        if target_type is float:
            return float(value_stripped)
        if target_type is list:
            # Comma-separated strings for lists
            return (
                [item.strip() for item in value_stripped.split(",") if item.strip()]
                if value_stripped
                else []
            )
        if target_type is str:
            return value
        logger.warning(f"Unsupported target type '{target_type.__name__}'. Returning string.")
        return value
    except ValueError:
        logger.warning(f"Failed convert '{value}' to {target_type.__name__}. Using default.")
        if target_type is bool:
            return False
        if target_type is int:
            return 0
        if target_type is float:
            return 0.0
        if target_type is list:
            return []
        return ""


# ===================================================
#  === Getter Functions ===
# ===================================================
def get_env(key: str, default: ConfigValueType) -> ConfigValueType:
    """Get an environment variable with type conversion, handling defaults.

    If the environment variable `key` exists, its value is converted to the
    type of the `default` value and returned. If the variable does not exist,
    the `default` value is returned directly.

    Args:
        key: The name of the environment variable (e.g., "HCC_BIOMARKERS_LOGGING_LEVEL").
        default: The default value to return if the environment variable is not set.
                 The type of this default value determines the target conversion type.

    Returns:
        The value from the environment variable (converted) or the default value.
    """
    value = os.environ.get(key)
    if value is None:
        return default
    return _convert_value(value, type(default))


def get_paths_config() -> dict[str, Any]:
    """Get the paths configuration."""
    return {
        "data_dir": get_env(f"{ENV_PREFIX}_PATHS_DATA_DIR", "data"),
        "results_dir": get_env(f"{ENV_PREFIX}_PATHS_RESULTS_DIR", "results"),
        "raw_dir_name": get_env(f"{ENV_PREFIX}_PATHS_RAW_DIR_NAME", "raw"),
        "tables_dir_name": get_env(f"{ENV_PREFIX}_PATHS_TABLES_DIR_NAME", "tables"),
        "logs_dir": get_env(f"{ENV_PREFIX}_PATHS_LOGS_DIR", "logs"),
    }


def get_files_config() -> dict[str, Any]:
    """Get the files configuration."""
    return {
        "expression_file": get_env(
            f"{ENV_PREFIX}_FILES_EXPRESSION_FILE", "GSE25097_expression.tsv"
        ),
        "metadata_file": get_env(f"{ENV_PREFIX}_FILES_METADATA_FILE", "GSE25097_samples.tsv"),
        "annotation_file": get_env(
            f"{ENV_PREFIX}_FILES_ANNOTATION_FILE", "GPL10687_annotation.tsv"
        ),
    }


def get_differential_expression_config() -> dict[str, Any]:
    """Get the differential expression configuration."""
    return {
        "case_group": get_env(f"{ENV_PREFIX}_DE_CASE_GROUP", "tumor"),
        "control_group": get_env(f"{ENV_PREFIX}_DE_CONTROL_GROUP", "non_tumor"),
        "adj_p_cutoff": get_env(f"{ENV_PREFIX}_DE_ADJ_P_CUTOFF", 0.05),
        "log_fc_cutoff": get_env(f"{ENV_PREFIX}_DE_LOG_FC_CUTOFF", 1.0),
    }


def get_ranking_config() -> dict[str, Any]:
    """Get the AUC ranking configuration."""
    return {
        "top_n": get_env(f"{ENV_PREFIX}_RANKING_TOP_N", 50),
        "bootstrap_top_n": get_env(f"{ENV_PREFIX}_RANKING_BOOTSTRAP_TOP_N", 10),
        "num_thresholds": get_env(f"{ENV_PREFIX}_RANKING_NUM_THRESHOLDS", 30),
    }


def get_bootstrap_config() -> dict[str, Any]:
    """Get the bootstrap validation configuration."""
    return {
        "iterations": get_env(f"{ENV_PREFIX}_BOOTSTRAP_ITERATIONS", 1000),
        "seed": get_env(f"{ENV_PREFIX}_BOOTSTRAP_SEED", 42),
        "confidence_level": get_env(f"{ENV_PREFIX}_BOOTSTRAP_CONFIDENCE_LEVEL", 0.95),
    }


def get_enrichment_config() -> dict[str, Any]:
    """Get the functional enrichment configuration."""
    gene_sets = get_env(
        f"{ENV_PREFIX}_ENRICHMENT_GENE_SETS",
        ["GO_Biological_Process_2021", "KEGG_2021_Human"],
    )
    if isinstance(gene_sets, str):
        gene_sets = [item.strip() for item in gene_sets.split(",") if item.strip()]
    return {
        "run_enrichment": get_env(f"{ENV_PREFIX}_ENRICHMENT_RUN_ENRICHMENT", True),
        "gene_sets": gene_sets,
        "organism": get_env(f"{ENV_PREFIX}_ENRICHMENT_ORGANISM", "human"),
        "adj_p_cutoff": get_env(f"{ENV_PREFIX}_ENRICHMENT_ADJ_P_CUTOFF", 0.05),
        "min_genes": get_env(f"{ENV_PREFIX}_ENRICHMENT_MIN_GENES", 5),
    }


def get_logging_config() -> dict[str, Any]:
    """Returns config for logging setup."""
    return {
        "level": get_env(f"{ENV_PREFIX}_LOGGING_LEVEL", "INFO"),
        "file_logging": get_env(f"{ENV_PREFIX}_LOGGING_FILE_LOGGING", True),
        "console_logging": get_env(f"{ENV_PREFIX}_LOGGING_CONSOLE_LOGGING", True),
        "log_format": get_env(
            f"{ENV_PREFIX}_LOGGING_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ),
        "root_logger_name": get_env(f"{ENV_PREFIX}_LOGGING_ROOT_LOGGER_NAME", "hcc_biomarkers"),
    }


def get_performance_config() -> dict[str, Any]:
    """Returns config related to parallel execution."""
    return {
        # 0 keeps per-gene and per-iteration work on the calling thread
        "max_cpu_cores": get_env(f"{ENV_PREFIX}_PERFORMANCE_MAX_CPU_CORES", 0),
    }


# ===================================================
#  === Path Construction Logic ===
# ===================================================
def get_path(key: str) -> Path:
    """Constructs and returns an absolute path for a given config key."""
    paths_cfg = get_paths_config()
    base_data_dir = Path(paths_cfg["data_dir"]).resolve()
    base_results_dir = Path(paths_cfg["results_dir"]).resolve()

    path_map: dict[str, Path] = {
        "data_dir": base_data_dir,
        "results_dir": base_results_dir,
        "raw_data_dir": base_data_dir / paths_cfg["raw_dir_name"],
        "tables_dir": base_results_dir / paths_cfg["tables_dir_name"],
        "logs_dir": Path(paths_cfg["logs_dir"]).resolve(),
    }
    if key in path_map:
        return path_map[key]
    msg = f"Unknown path key: '{key}'. Available: {list(path_map.keys())}"
    logger.error(msg)
    raise KeyError(msg)


# ===================================================
#  === File Path Construction Logic ===
# ===================================================
def get_file_path(file_key: str) -> Path:
    """Constructs the full, absolute path to a specific data file."""
    files_cfg = get_files_config()
    try:
        raw_data_dir = get_path("raw_data_dir")
        file_map: dict[str, str] = {
            "expression": files_cfg["expression_file"],
            "metadata": files_cfg["metadata_file"],
            "annotation": files_cfg["annotation_file"],
        }
        if file_key in file_map:
            return raw_data_dir / file_map[file_key]
        msg = f"Unknown file key: '{file_key}'. Available: {list(file_map.keys())}"
        logger.error(msg)
        raise KeyError(msg)
    except KeyError as e:
        logger.exception(f"Failed to resolve data file path: {e}")
        raise


# ===================================================
#  === Directory Initialization ===
# ===================================================
def setup_directories() -> None:
    """Creates all necessary project directories."""
    logger.info("Setting up project directories...")
    critical_dirs: list[str] = ["results_dir", "logs_dir"]
    dir_keys = ["data_dir", "results_dir", "logs_dir", "raw_data_dir", "tables_dir"]

    for key in dir_keys:
        dir_path = get_path(key)
        try:
            logger.debug(f"Ensuring directory exists: {dir_path}")
            dir_path.mkdir(parents=True, exist_ok=True)
            if not dir_path.is_dir():
                msg = f"Directory creation failed or path is not a directory: {dir_path}"
                raise OSError(msg)
        except OSError as e:
            logger.exception(f"Could not create or access directory {dir_path}: {e!s}")
            if key in critical_dirs:
                msg = f"Fatal: Cannot access/create {dir_path}"
                raise SystemExit(msg) from e

    logger.info("Directory setup process completed.")
