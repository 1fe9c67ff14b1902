"""
Synthetic Data Validation

Pandera schemas for the simulated and banded employee tables.
"""

from .schemas import (
    SCHEMA_REGISTRY,
    BandedEmployeeSchema,
    EmployeeSchema,
    require_valid,
    validate_dataframe,
)

__all__ = [
    "SCHEMA_REGISTRY",
    "EmployeeSchema",
    "BandedEmployeeSchema",
    "validate_dataframe",
    "require_valid",
]
