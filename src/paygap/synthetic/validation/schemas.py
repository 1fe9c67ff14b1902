"""
Pandera Schema Definitions for the simulated tables.

Validates DataFrame structure, data types, and the invariants of the
simulation and of the banding transform.
"""

from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd
import pandera.pandas as pa
from pandera.errors import SchemaErrors

from ...config import GENDERS, GROUP_LABELS, ROLE_TYPES
from ...exceptions import SchemaValidationError


# =============================================================================
# EMPLOYEE SCHEMA
# =============================================================================

EMPLOYEE_COLUMNS = {
    "employee_id": pa.Column(
        str,
        pa.Check.str_matches(r"^emp_\d+$"),
        unique=True,
        description="Unique employee identifier (format: emp_XXXXX)",
    ),
    "unmeasured_confounder": pa.Column(
        float,
        nullable=False,
        description="Latent confounder; never used downstream unless requested",
    ),
    "years_since_start": pa.Column(
        int,
        pa.Check.ge(0),
        nullable=False,
        description="Tenure in whole years",
    ),
    "percentage_fte": pa.Column(
        float,
        [pa.Check.gt(0.0), pa.Check.lt(1.0)],
        nullable=False,
        description="Fraction of full time, strictly inside (0, 1)",
    ),
    "gender": pa.Column(
        str,
        pa.Check.isin(GENDERS),
        nullable=False,
    ),
    "level": pa.Column(
        int,
        pa.Check.ge(1),
        nullable=False,
        description="Grade, starting at 1",
    ),
    "role_type": pa.Column(
        str,
        pa.Check.isin(ROLE_TYPES),
        nullable=False,
    ),
    "salary": pa.Column(
        float,
        pa.Check(np.isfinite, element_wise=False, error="salary must be finite"),
        nullable=False,
    ),
}

EmployeeSchema = pa.DataFrameSchema(
    columns=EMPLOYEE_COLUMNS,
    strict=False,
    coerce=True,
    name="EmployeeSchema",
    description="Schema for simulated employee records",
)


# =============================================================================
# BANDED EMPLOYEE SCHEMA
# =============================================================================


def _salary_within_band(df: pd.DataFrame) -> pd.Series:
    bounded = df["band_is_bounded"]
    inside = (df["salary_band_min"] <= df["salary"]) & (df["salary"] < df["salary_band_max"])
    return ~bounded | inside


def _mid_and_sd_consistent(df: pd.DataFrame) -> pd.Series:
    bounded = df["band_is_bounded"]
    mid_ok = np.isclose(df["mid_estimate"], (df["salary_band_min"] + df["salary_band_max"]) / 2)
    sd_ok = np.isclose(df["sd_estimate"], (df["salary_band_max"] - df["salary_band_min"]) / 4)
    return ~bounded | (mid_ok & sd_ok)


def _unbounded_rows_are_missing(df: pd.DataFrame) -> pd.Series:
    bounded = df["band_is_bounded"]
    missing = df[["salary_band_min", "salary_band_max", "mid_estimate", "sd_estimate"]].isna().all(axis=1)
    return bounded | missing


BandedEmployeeSchema = pa.DataFrameSchema(
    columns={
        **EMPLOYEE_COLUMNS,
        "salary_band_min": pa.Column(float, nullable=True),
        "salary_band_max": pa.Column(float, nullable=True),
        "band_is_bounded": pa.Column(bool, nullable=False),
        "mid_estimate": pa.Column(float, nullable=True),
        "sd_estimate": pa.Column(float, pa.Check.gt(0.0), nullable=True),
        "percentage_std": pa.Column(float, nullable=False),
        "group_label": pa.Column(
            str,
            pa.Check.isin(GROUP_LABELS),
            nullable=False,
            description="gender + role_type, the spline grouping key",
        ),
    },
    checks=[
        pa.Check(_salary_within_band, error="salary outside its band"),
        pa.Check(_mid_and_sd_consistent, error="mid/sd estimate inconsistent with band"),
        pa.Check(_unbounded_rows_are_missing, error="unbounded band with finite estimates"),
    ],
    strict=False,
    coerce=True,
    name="BandedEmployeeSchema",
    description="Schema for employees after banding",
)


# =============================================================================
# SCHEMA REGISTRY
# =============================================================================

SCHEMA_REGISTRY: Dict[str, pa.DataFrameSchema] = {
    "employees": EmployeeSchema,
    "banded_employees": BandedEmployeeSchema,
}


def validate_dataframe(
    df: pd.DataFrame,
    table_name: str,
    lazy: bool = True,
) -> Tuple[bool, Optional[SchemaErrors]]:
    """
    Validate a DataFrame against its schema.

    Args:
        df: DataFrame to validate
        table_name: Name of the table (must be in SCHEMA_REGISTRY)
        lazy: If True, collect all errors; if False, fail fast

    Returns:
        Tuple of (is_valid, errors)
    """
    if table_name not in SCHEMA_REGISTRY:
        raise ValueError(f"Unknown table: {table_name}. Available: {list(SCHEMA_REGISTRY.keys())}")

    schema = SCHEMA_REGISTRY[table_name]

    try:
        schema.validate(df, lazy=lazy)
        return True, None
    except SchemaErrors as e:
        return False, e


def require_valid(df: pd.DataFrame, table_name: str) -> pd.DataFrame:
    """
    Validate and raise on failure.

    Raises:
        SchemaValidationError: with the collected pandera failure cases
    """
    is_valid, errors = validate_dataframe(df, table_name, lazy=True)
    if not is_valid:
        raise SchemaValidationError(table_name, errors.failure_cases)
    return df
