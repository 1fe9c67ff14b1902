"""
Salary Banding.

Coarsens continuous salaries into the bands salary data is usually reported
in, and derives the measurement-error inputs for the regression:

    mid_estimate = (band_max + band_min) / 2
    sd_estimate  = (band_max - band_min) / 4

i.e. a band is treated as roughly uniform, spanning +/- 2 standard deviations.
"""

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

import numpy as np
import pandas as pd

from ..config import SALARY_BAND_BOUNDARIES, TailPolicy
from ..exceptions import BandingError, UnboundedBandError

logger = logging.getLogger(__name__)

BAND_COLUMNS = [
    "salary_band_min",
    "salary_band_max",
    "band_is_bounded",
    "mid_estimate",
    "sd_estimate",
    "percentage_std",
    "group_label",
]


@dataclass(frozen=True)
class SalaryBands:
    """
    Ascending band boundaries.

    ``b_0 < b_1 < ... < b_k`` partition the real line into
    (-inf, b_0), [b_0, b_1), ..., [b_{k-1}, b_k), [b_k, +inf).
    """

    boundaries: Tuple[float, ...] = SALARY_BAND_BOUNDARIES

    def __post_init__(self):
        boundaries = tuple(float(b) for b in self.boundaries)
        if not boundaries:
            raise BandingError("At least one band boundary is required")
        if any(not math.isfinite(b) for b in boundaries):
            raise BandingError("Band boundaries must be finite")
        if any(lo >= hi for lo, hi in zip(boundaries, boundaries[1:])):
            raise BandingError(f"Band boundaries must be strictly ascending: {boundaries}")
        object.__setattr__(self, "boundaries", boundaries)

    @classmethod
    def regular(cls, start: float, stop: float, step: float) -> "SalaryBands":
        """Evenly spaced boundaries from start to stop inclusive."""
        return cls(tuple(np.arange(start, stop + step / 2, step)))

    @property
    def lowest(self) -> float:
        return self.boundaries[0]

    @property
    def highest(self) -> float:
        return self.boundaries[-1]

    @property
    def n_bounded(self) -> int:
        return len(self.boundaries) - 1

    def locate(self, salary: float) -> Tuple[float, float]:
        """
        Find the band containing a salary.

        Returns:
            (band_min, band_max); -inf / +inf for the open tail bands

        Raises:
            BandingError: if salary is NaN
        """
        if salary is None or math.isnan(salary):
            raise BandingError("Cannot band a missing salary")
        lower, upper = locate_bands([salary], self)
        return float(lower[0]), float(upper[0])

    def is_bounded(self, salary: float) -> bool:
        lower, upper = self.locate(salary)
        return math.isfinite(lower) and math.isfinite(upper)

    def labels(self) -> list:
        """Human-readable labels for every band, tails included."""
        edges = [-math.inf, *self.boundaries, math.inf]
        labels = []
        for lower, upper in zip(edges, edges[1:]):
            if math.isinf(lower):
                labels.append(f"<{upper:,.0f}")
            elif math.isinf(upper):
                labels.append(f">={lower:,.0f}")
            else:
                labels.append(f"{lower:,.0f}-{upper:,.0f}")
        return labels


def band_midpoint(band_min: float, band_max: float) -> float:
    return (band_max + band_min) / 2


def band_sd(band_min: float, band_max: float) -> float:
    return (band_max - band_min) / 4


def standardize(values: pd.Series) -> pd.Series:
    """Z-score with the sample standard deviation."""
    return (values - values.mean()) / values.std()


def locate_bands(salaries: Iterable[float], bands: SalaryBands) -> Tuple[np.ndarray, np.ndarray]:
    """Vector form of SalaryBands.locate()."""
    values = np.asarray(list(salaries), dtype=float)
    if np.isnan(values).any():
        raise BandingError(f"{int(np.isnan(values).sum())} salaries are missing")
    edges = np.asarray(bands.boundaries)
    idx = np.searchsorted(edges, values, side="right")
    padded = np.concatenate([[-np.inf], edges, [np.inf]])
    return padded[idx], padded[idx + 1]


def band_salaries(
    df: pd.DataFrame,
    bands: Optional[SalaryBands] = None,
    tail_policy: TailPolicy = TailPolicy.MARK_MISSING,
    salary_col: str = "salary",
) -> pd.DataFrame:
    """
    Add band and measurement-error columns to an employee table.

    Args:
        df: Employee table with salary, percentage_fte, gender and role_type
        bands: Band schedule. Uses the default 50k-200k schedule if not provided.
        tail_policy: REJECT raises on any salary in an open tail band;
            MARK_MISSING leaves that row's band columns NaN and
            band_is_bounded False so it can be excluded from the regression.
        salary_col: Column holding the true salary

    Returns:
        New DataFrame; the input is not modified.

    Raises:
        UnboundedBandError: REJECT policy and at least one unbounded salary
        BandingError: missing salaries or required columns
    """
    bands = bands or SalaryBands()
    tail_policy = TailPolicy(tail_policy)

    required = [salary_col, "percentage_fte", "gender", "role_type"]
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise BandingError(f"Missing columns: {missing}")

    lower, upper = locate_bands(df[salary_col], bands)
    bounded = np.isfinite(lower) & np.isfinite(upper)
    n_unbounded = int((~bounded).sum())

    if n_unbounded:
        if tail_policy == TailPolicy.REJECT:
            raise UnboundedBandError(n_unbounded, bands.lowest, bands.highest)
        logger.warning(
            f"{n_unbounded} of {len(df)} salaries fall in an open tail band; "
            f"marking their bands as missing"
        )

    lower = np.where(bounded, lower, np.nan)
    upper = np.where(bounded, upper, np.nan)

    out = df.copy()
    out["salary_band_min"] = lower
    out["salary_band_max"] = upper
    out["band_is_bounded"] = bounded
    out["mid_estimate"] = band_midpoint(lower, upper)
    out["sd_estimate"] = band_sd(lower, upper)

    out["percentage_std"] = standardize(out["percentage_fte"])
    out["group_label"] = out["gender"].astype(str) + out["role_type"].astype(str)

    out.attrs = dict(df.attrs)
    out.attrs["band_boundaries"] = list(bands.boundaries)
    out.attrs["tail_policy"] = tail_policy.value
    out.attrs["n_unbounded"] = n_unbounded
    return out


def band_occupancy(df: pd.DataFrame, bands: Optional[SalaryBands] = None, salary_col: str = "salary") -> pd.Series:
    """Count of salaries per band, tails included, in band order."""
    bands = bands or SalaryBands()
    edges = [-np.inf, *bands.boundaries, np.inf]
    binned = pd.cut(df[salary_col], bins=edges, right=False, labels=bands.labels())
    return binned.value_counts(sort=False)
