"""
Model Specification Assembler.

Builds the declarative regression handed to the external sampler:

    mid_estimate | se(sd_estimate, sigma = TRUE)
        ~ gender * role_type + mo(level) + percentage_std
          + s(years_since_start, by = group_label)

The specification is data only. Sampling, monotonicity enforcement and
spline penalisation are the sampler's job.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from ..config import GROUP_LABELS, ResponseFamily, SamplerSettings
from ..exceptions import ModelSpecificationError
from ..synthetic.banding import standardize
from .priors import Prior, PriorSet, default_priors

logger = logging.getLogger(__name__)

REFERENCE_LEVELS = {"gender": "man", "role_type": "research"}
CONTRAST_LEVELS = {"gender": "woman", "role_type": "support"}


@dataclass(frozen=True)
class MonotonicTerm:
    """Ordinal predictor whose effect is a sum of same-signed per-step increments."""

    variable: str = "level"

    @property
    def name(self) -> str:
        return f"mo{self.variable}"


@dataclass(frozen=True)
class SmoothTerm:
    """Spline over ``variable`` with a separate curve for each level of ``by``."""

    variable: str = "years_since_start"
    by: str = "group_label"
    df: int = 5


@dataclass
class ModelSpecification:
    """
    Opaque payload for the external sampler.

    Attributes:
        data: Bounded rows of the banded table
        response: Interval midpoint column
        measurement_error: Known per-row sd of the response
        categorical_effects: Treatment-coded factors (reference levels in
            REFERENCE_LEVELS), with their interaction when ``interaction`` is set
        numeric_effects: Linear numeric predictors
        monotonic: Monotonic ordinal term
        smooth: Group-wise spline term
        family: Response distribution
        priors: Prior statements
        sampler: Chains, warmup, iterations, seed
        version: Model version used in the cache filename
    """

    data: pd.DataFrame
    response: str = "mid_estimate"
    measurement_error: str = "sd_estimate"
    categorical_effects: Tuple[str, ...] = ("gender", "role_type")
    interaction: bool = True
    numeric_effects: Tuple[str, ...] = ("percentage_std",)
    monotonic: MonotonicTerm = field(default_factory=MonotonicTerm)
    smooth: SmoothTerm = field(default_factory=SmoothTerm)
    family: ResponseFamily = ResponseFamily.GAUSSIAN
    priors: PriorSet = field(default_factory=default_priors)
    sampler: SamplerSettings = field(default_factory=SamplerSettings)
    version: str = "v1"

    @property
    def formula(self) -> str:
        joiner = " * " if self.interaction else " + "
        rhs = [joiner.join(self.categorical_effects), f"mo({self.monotonic.variable})"]
        rhs.extend(self.numeric_effects)
        rhs.append(f"s({self.smooth.variable}, by = {self.smooth.by})")
        return f"{self.response} | se({self.measurement_error}, sigma = TRUE) ~ " + " + ".join(rhs)

    @property
    def fixed_effect_names(self) -> List[str]:
        """Slope names in brms-style treatment coding."""
        names = [f"{var}{CONTRAST_LEVELS[var]}" for var in self.categorical_effects]
        if self.interaction and len(names) == 2:
            names.append(":".join(names))
        names.extend(self.numeric_effects)
        return names

    @property
    def n_obs(self) -> int:
        return len(self.data)

    @property
    def adjusts_for_confounder(self) -> bool:
        return "unmeasured_confounder" in self.numeric_effects

    def describe(self) -> Dict[str, Any]:
        return {
            "formula": self.formula,
            "family": self.family.value,
            "n_obs": self.n_obs,
            "priors": [str(p) for p in self.priors],
            "sampler": {
                "chains": self.sampler.chains,
                "cores": self.sampler.cores,
                "warmup": self.sampler.warmup,
                "iterations": self.sampler.iterations,
                "seed": self.sampler.seed,
            },
            "version": self.version,
        }


def assemble_model_specification(
    df: pd.DataFrame,
    family: ResponseFamily = ResponseFamily.GAUSSIAN,
    priors: Optional[List[Prior]] = None,
    sampler: Optional[SamplerSettings] = None,
    adjust_for_confounder: bool = False,
    spline_df: int = 5,
    version: str = "v1",
) -> ModelSpecification:
    """
    Build the regression specification from a banded employee table.

    Rows whose band is unbounded are excluded here, so infinite or missing
    band limits never reach the model.

    Args:
        df: Output of band_salaries()
        family: Response distribution
        priors: Statements overriding the defaults for the same target
        sampler: Sampler settings; defaults if not provided
        adjust_for_confounder: Add unmeasured_confounder as a regressor.
            Without it the gender coefficient stays confounded.
        spline_df: Basis functions per group-wise spline
        version: Model version recorded in the cache filename

    Raises:
        ModelSpecificationError: missing columns, invalid measurement error,
            or too few usable rows
    """
    family = ResponseFamily(family)
    numeric_effects: Tuple[str, ...] = ("percentage_std",)
    if adjust_for_confounder:
        numeric_effects += ("unmeasured_confounder",)
    logger.info(
        f"Unmeasured confounder {'included' if adjust_for_confounder else 'excluded'} as a regressor"
    )

    required = [
        "mid_estimate",
        "sd_estimate",
        "band_is_bounded",
        "gender",
        "role_type",
        "level",
        "years_since_start",
        "group_label",
        "percentage_fte",
        *numeric_effects,
    ]
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ModelSpecificationError(f"Missing columns (was the table banded?): {missing}")

    data = df.loc[df["band_is_bounded"].astype(bool)].reset_index(drop=True)
    n_excluded = len(df) - len(data)
    if n_excluded:
        logger.warning(f"Excluding {n_excluded} rows with unbounded salary bands from the regression")
        # rescale over the modelled rows only
        data["percentage_std"] = standardize(data["percentage_fte"])

    if not np.isfinite(data["sd_estimate"]).all() or (data["sd_estimate"] <= 0).any():
        raise ModelSpecificationError("sd_estimate must be positive and finite for every modelled row")

    if spline_df < 3:
        raise ModelSpecificationError(f"spline_df must be at least 3, got {spline_df}")

    min_rows = spline_df * len(GROUP_LABELS) + 8
    if len(data) < min_rows:
        raise ModelSpecificationError(f"Need at least {min_rows} bounded rows, got {len(data)}")

    absent = sorted(set(GROUP_LABELS) - set(data["group_label"]))
    if absent:
        logger.warning(f"No observations for groups {absent}; their splines follow the prior")

    prior_set = default_priors(family)
    if priors:
        prior_set = prior_set.override(priors)

    spec = ModelSpecification(
        data=data,
        numeric_effects=numeric_effects,
        smooth=SmoothTerm(df=spline_df),
        family=family,
        priors=prior_set,
        sampler=sampler or SamplerSettings(),
        version=version,
    )
    logger.info(f"Model: {spec.formula} [{family.value}, n={spec.n_obs}]")
    return spec
