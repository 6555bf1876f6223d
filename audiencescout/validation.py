"""
Shared validation utilities for tabular inputs and outputs.

Signal, district and store frames are checked for their required columns
before any row is converted, and hex overlay frames are checked against the
standard ``h3_id``/``res`` schema before they are written.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Set

import pandas as pd

from .errors import SchemaError

logger = logging.getLogger(__name__)


def validate_frame_schema(
    df: pd.DataFrame,
    required_columns: Set[str],
    source_path: Optional[str] = None
) -> None:
    """
    Validate that a DataFrame has all required columns.

    Args:
        df: DataFrame to validate
        required_columns: Set of column names that must be present
        source_path: Optional path the frame was read from (for error messages)

    Raises:
        SchemaError: if any required columns are missing
    """
    if not isinstance(df, pd.DataFrame):
        raise SchemaError(f"Expected a pandas DataFrame, got {type(df).__name__}")
    missing = required_columns - set(df.columns)
    if missing:
        source = f" from {source_path}" if source_path else ""
        raise SchemaError(
            f"Missing required columns{source}: {sorted(missing)}. "
            f"Found columns: {sorted(map(str, df.columns))}"
        )


def validate_no_nulls(df: pd.DataFrame, columns: Set[str], source_path: Optional[str] = None) -> None:
    """Required columns must not hold nulls."""
    source = f" in {source_path}" if source_path else ""
    for col in sorted(columns):
        null_count = int(df[col].isna().sum())
        if null_count > 0:
            raise SchemaError(f"Found {null_count} null values in '{col}' column{source}")


def validate_confidence_range(df: pd.DataFrame, column: str = "confidence") -> None:
    values = pd.to_numeric(df[column], errors="coerce")
    bad = values.isna() | (values < 0.0) | (values > 1.0)
    if bad.any():
        raise SchemaError(
            f"Column '{column}' must be numeric within [0, 1]; {int(bad.sum())} rows are not "
            f"(first bad row index: {df.index[bad.to_numpy()][0]})"
        )


def validate_overlay_output(
    df: pd.DataFrame,
    expected_columns: Set[str],
    h3_id_column: str = "h3_id",
    res_column: str = "res"
) -> None:
    """
    Validate standard hex overlay output schema.

    Args:
        df: DataFrame to validate
        expected_columns: Set of all expected column names (including h3_id, res)
        h3_id_column: Name of the H3 cell ID column (default: 'h3_id')
        res_column: Name of the resolution column (default: 'res')

    Raises:
        SchemaError: if schema validation fails
    """
    validate_frame_schema(df, expected_columns)

    if df[h3_id_column].dtype != "uint64":
        raise SchemaError(f"Column '{h3_id_column}' must be uint64, got {df[h3_id_column].dtype}")
    if df[res_column].dtype != "int32":
        raise SchemaError(f"Column '{res_column}' must be int32, got {df[res_column].dtype}")

    validate_no_nulls(df, {h3_id_column})

    dup_count = int(df.duplicated(subset=[h3_id_column, res_column]).sum())
    if dup_count > 0:
        raise SchemaError(f"Found {dup_count} duplicate ({h3_id_column}, {res_column}) pairs")


def check_frames(
    paths: List[str],
    required_columns: Set[str],
    warn_only: bool = False
) -> List[pd.DataFrame]:
    """
    Load and validate several CSV/parquet files with the same schema.

    Args:
        paths: file paths to load
        required_columns: columns that must be present in each file
        warn_only: if True, log and skip failing files instead of raising

    Returns:
        List of validated DataFrames (only valid ones if warn_only=True)
    """
    from .ingest import read_table

    valid_frames = []
    for path in paths:
        try:
            df = read_table(path)
            validate_frame_schema(df, required_columns, source_path=path)
            valid_frames.append(df)
        except (OSError, ValueError) as exc:
            if warn_only:
                logger.warning(f"Failed to load {path}: {exc}")
                continue
            raise
    return valid_frames
