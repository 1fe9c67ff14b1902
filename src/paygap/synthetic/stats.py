"""
Synthetic Data Statistics.

Per-group summaries used for reproducibility checks and the report.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

import pandas as pd


@dataclass
class GroupStats:
    """Statistics for one gender x role_type cell."""

    gender: str
    role_type: str
    count: int
    mean_salary: float
    median_salary: float
    mean_level: float


@dataclass
class DatasetStats:
    """Summary statistics for a simulated employee table."""

    total_records: int
    groups: List[GroupStats] = field(default_factory=list)
    n_unbounded: int = 0
    raw_gap: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_records": self.total_records,
            "n_unbounded": self.n_unbounded,
            "raw_gap": self.raw_gap,
            "groups": [g.__dict__ for g in self.groups],
        }


def summarize_groups(df: pd.DataFrame, salary_col: str = "salary") -> pd.DataFrame:
    """
    Count and salary summaries per gender x role_type.

    Returns:
        DataFrame indexed by (gender, role_type) with count, mean_salary,
        median_salary and mean_level columns.
    """
    return df.groupby(["gender", "role_type"], sort=True).agg(
        count=(salary_col, "size"),
        mean_salary=(salary_col, "mean"),
        median_salary=(salary_col, "median"),
        mean_level=("level", "mean"),
    )


def compute_dataset_stats(df: pd.DataFrame) -> DatasetStats:
    """
    Compute summary statistics for an employee table.

    ``raw_gap`` is the unadjusted difference in mean salary, woman - man.
    """
    summary = summarize_groups(df)
    groups = [
        GroupStats(
            gender=gender,
            role_type=role_type,
            count=int(row["count"]),
            mean_salary=float(row["mean_salary"]),
            median_salary=float(row["median_salary"]),
            mean_level=float(row["mean_level"]),
        )
        for (gender, role_type), row in summary.iterrows()
    ]
    by_gender = df.groupby("gender")["salary"].mean()
    raw_gap = float(by_gender.get("woman", float("nan")) - by_gender.get("man", float("nan")))
    n_unbounded = int((~df["band_is_bounded"]).sum()) if "band_is_bounded" in df.columns else 0
    return DatasetStats(total_records=len(df), groups=groups, n_unbounded=n_unbounded, raw_gap=raw_gap)
