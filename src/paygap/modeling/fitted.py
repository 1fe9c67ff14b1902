"""
Fitted Model.

Wraps the InferenceData returned by the sampler together with the
specification that produced it. Everything here works from the posterior
draws alone, so a persisted fit answers the same queries without
re-sampling.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import arviz as az
import numpy as np
import pandas as pd

from ..config import GENDERS, GROUP_LABELS, ROLE_TYPES
from ..exceptions import ModelSpecificationError, SamplerError, StaleFitError
from .design import ModelDesign
from .hypothesis import HypothesisResult, evaluate_hypothesis
from .specification import REFERENCE_LEVELS, ModelSpecification

logger = logging.getLogger(__name__)

RHAT_THRESHOLD = 1.01
MIN_ESS_BULK = 400


def fit_cache_path(
    output_dir: Union[str, Path],
    version: str,
    seed: int,
    n: int,
) -> Path:
    """Descriptive cache filename: model version, seed and sample size."""
    return Path(output_dir) / "fits" / f"paygap_me_{version}_seed{seed}_n{n}.nc"


@dataclass
class FitDiagnostics:
    """Convergence summary. Problems are reported, never auto-corrected."""

    n_divergences: int
    max_rhat: float
    min_ess_bulk: float
    n_chains: int
    n_draws: int
    issues: List[str] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return not self.issues

    def to_dict(self) -> Dict[str, Any]:
        return {
            "n_divergences": self.n_divergences,
            "max_rhat": self.max_rhat,
            "min_ess_bulk": self.min_ess_bulk,
            "n_chains": self.n_chains,
            "n_draws": self.n_draws,
            "converged": self.converged,
            "issues": list(self.issues),
        }


class FittedModel:
    """
    Posterior of the measurement-error regression.

    Usage:
        fitted = sampler.fit(spec, cache_path)
        fitted.summary()
        fitted.hypothesis("genderwoman = 0")
        fitted.conditional_effects("years_since_start:group_label")
    """

    def __init__(
        self,
        idata: az.InferenceData,
        spec: ModelSpecification,
        design: Optional[ModelDesign] = None,
    ):
        self.idata = idata
        self.spec = spec
        self.design = design or ModelDesign(spec)
        self._stacked = None

    # -------------------------------------------------------------------------
    # Posterior access
    # -------------------------------------------------------------------------

    @property
    def coefficient_vars(self) -> Dict[str, str]:
        """Coefficient name -> posterior variable name."""
        names = {"Intercept": "Intercept"}
        for name in self.design.fixed_names:
            names[name] = f"b_{name}"
        names[self.spec.monotonic.name] = f"bsp_{self.spec.monotonic.name}"
        names["sigma"] = "sigma"
        if "alpha" in self.idata.posterior:
            names["alpha"] = "alpha"
        return names

    def _posterior(self):
        if self._stacked is None:
            self._stacked = self.idata.posterior.stack(sample=("chain", "draw"))
        return self._stacked

    def _values(self, var: str, *dims: str) -> np.ndarray:
        """Draws of one variable with ``sample`` first, then ``dims``."""
        post = self._posterior()
        if var not in post:
            raise SamplerError(f"Posterior has no variable '{var}'")
        return post[var].transpose("sample", *dims).to_numpy()

    def coefficient_draws(self) -> pd.DataFrame:
        """One column per named coefficient, one row per posterior draw."""
        return pd.DataFrame({name: self._values(var) for name, var in self.coefficient_vars.items()})

    @property
    def n_draws(self) -> int:
        post = self.idata.posterior
        return int(post.sizes["chain"] * post.sizes["draw"])

    def summary(self, prob: float = 0.95) -> pd.DataFrame:
        """Mean, sd, central interval, r_hat and bulk ESS per coefficient."""
        draws = self.coefficient_draws()
        tail = (1 - prob) / 2
        table = pd.DataFrame(
            {
                "mean": draws.mean(),
                "sd": draws.std(ddof=1),
                "lower": draws.quantile(tail),
                "upper": draws.quantile(1 - tail),
            }
        )
        var_names = list(self.coefficient_vars.values())
        rhat = az.rhat(self.idata.posterior[var_names])
        ess = az.ess(self.idata.posterior[var_names], method="bulk")
        table["r_hat"] = [float(rhat[var]) for var in var_names]
        table["ess_bulk"] = [float(ess[var]) for var in var_names]
        table.index.name = "coefficient"
        return table

    # -------------------------------------------------------------------------
    # Predictions
    # -------------------------------------------------------------------------

    def predict_mu(self, frame: pd.DataFrame) -> np.ndarray:
        """
        Posterior draws of the linear predictor for each row of ``frame``.

        Returns:
            Array of shape (n_draws, len(frame))
        """
        design = self.design
        X = design.fixed_matrix(frame)

        mu = self._values("Intercept")[:, None] + self._slopes() @ X.T

        mo = self.spec.monotonic.name
        simo = self._values(f"simo_{mo}", "level_step")
        cumulative = np.concatenate([np.zeros((simo.shape[0], 1)), np.cumsum(simo, axis=1)], axis=1)
        bsp = self._values(f"bsp_{mo}")
        mu = mu + bsp[:, None] * design.n_steps * cumulative[:, design.level_index(frame)]

        g = design.group_index(frame)
        bs = self._values("bs", "group")
        sds = self._values("sds", "group")
        zs = self._values("zs", "group", "basis")
        weights = sds[:, :, None] * zs
        basis = design.spline_basis(frame)
        mu = mu + bs[:, g] * design.smooth_linear(frame)[None, :]
        mu = mu + np.einsum("nk,snk->sn", basis, weights[:, g, :])
        return mu

    def _slopes(self) -> np.ndarray:
        return np.column_stack([self._values(f"b_{name}") for name in self.design.fixed_names])

    def reference_frame(self) -> pd.DataFrame:
        """One row holding every predictor at its reference value."""
        data = self.spec.data
        row: Dict[str, Any] = {
            "gender": REFERENCE_LEVELS["gender"],
            "role_type": REFERENCE_LEVELS["role_type"],
            self.spec.monotonic.variable: int(data[self.spec.monotonic.variable].mode().iloc[0]),
            self.spec.smooth.variable: float(data[self.spec.smooth.variable].mean()),
        }
        for name in self.spec.numeric_effects:
            row[name] = float(data[name].mean())
        return pd.DataFrame([row])

    def _grid_values(self, variable: str, resolution: int) -> List[Any]:
        data = self.spec.data
        if variable == "gender":
            return list(GENDERS)
        if variable == "role_type":
            return list(ROLE_TYPES)
        if variable == self.spec.smooth.by:
            return list(GROUP_LABELS)
        if variable == self.spec.monotonic.variable:
            return list(range(self.design.level_min, self.design.level_max + 1))
        if variable == self.spec.smooth.variable or variable in self.spec.numeric_effects:
            return list(np.linspace(data[variable].min(), data[variable].max(), resolution))
        raise ModelSpecificationError(f"'{variable}' is not a predictor in the model")

    def conditional_effects(
        self,
        effect: str,
        conditions: Optional[Dict[str, Any]] = None,
        resolution: int = 50,
        prob: float = 0.95,
    ) -> pd.DataFrame:
        """
        Predicted response across one predictor (or a pair "a:b"), all other
        predictors held at reference values.

        Args:
            effect: Predictor name, or two names joined by ':'
            conditions: Overrides for the reference values
            resolution: Grid points for continuous predictors
            prob: Mass of the credible interval

        Returns:
            DataFrame with the grid columns plus estimate, std_error, lower, upper
        """
        variables = effect.split(":")
        if len(variables) > 2:
            raise ModelSpecificationError("Conditional effects take at most two predictors")

        grid = pd.MultiIndex.from_product(
            [self._grid_values(v, resolution) for v in variables], names=variables
        ).to_frame(index=False)

        frame = self.reference_frame()
        for key, value in (conditions or {}).items():
            frame[key] = value
        frame = frame.drop(columns=[v for v in variables if v in frame.columns])
        frame = grid.merge(frame, how="cross")

        by = self.spec.smooth.by
        if by in variables:
            frame["gender"] = frame[by].map(lambda s: next(g for g in GENDERS if s.startswith(g)))
            frame["role_type"] = [label[len(g):] for label, g in zip(frame[by], frame["gender"])]
        else:
            frame[by] = frame["gender"] + frame["role_type"]

        mu = self.predict_mu(frame)
        tail = (1 - prob) / 2
        result = grid.copy()
        result["estimate"] = mu.mean(axis=0)
        result["std_error"] = mu.std(axis=0, ddof=1)
        result["lower"] = np.quantile(mu, tail, axis=0)
        result["upper"] = np.quantile(mu, 1 - tail, axis=0)
        return result

    # -------------------------------------------------------------------------
    # Hypotheses + diagnostics
    # -------------------------------------------------------------------------

    def hypothesis(self, expression: str, prob: float = 0.95) -> HypothesisResult:
        return evaluate_hypothesis(self.coefficient_draws(), expression, prob=prob)

    def hypotheses(self, expressions: Sequence[str], prob: float = 0.95) -> pd.DataFrame:
        return pd.DataFrame([self.hypothesis(e, prob).to_dict() for e in expressions])

    def diagnostics(self) -> FitDiagnostics:
        """Divergences, r_hat and bulk ESS over the named coefficients."""
        n_divergences = 0
        if "sample_stats" in self.idata.groups() and "diverging" in self.idata.sample_stats:
            n_divergences = int(self.idata.sample_stats["diverging"].sum())

        table = self.summary()
        max_rhat = float(table["r_hat"].max())
        min_ess = float(table["ess_bulk"].min())
        post = self.idata.posterior

        issues = []
        if n_divergences:
            issues.append(f"{n_divergences} divergent transitions")
        if np.isfinite(max_rhat) and max_rhat > RHAT_THRESHOLD:
            issues.append(f"max r_hat {max_rhat:.3f} > {RHAT_THRESHOLD}")
        if np.isfinite(min_ess) and min_ess < MIN_ESS_BULK:
            issues.append(f"min bulk ESS {min_ess:.0f} < {MIN_ESS_BULK}")
        for issue in issues:
            logger.warning(f"Convergence check: {issue}")

        return FitDiagnostics(
            n_divergences=n_divergences,
            max_rhat=max_rhat,
            min_ess_bulk=min_ess,
            n_chains=int(post.sizes["chain"]),
            n_draws=int(post.sizes["draw"]),
            issues=issues,
        )

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    @property
    def model_key(self) -> Dict[str, str]:
        """Formula and family the posterior was drawn from, stored with the fit."""
        return {"formula": self.spec.formula, "family": self.spec.family.value}

    def save(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.idata.posterior.attrs.update(self.model_key)
        self.idata.to_netcdf(str(path))
        logger.info(f"Saved fit to {path}")
        return path

    @classmethod
    def load(
        cls,
        path: Union[str, Path],
        spec: ModelSpecification,
        design: Optional[ModelDesign] = None,
    ) -> "FittedModel":
        """
        Load a persisted fit.

        Raises:
            SamplerError: if the file cannot be read
            StaleFitError: if the fit was drawn from a different model than ``spec``
        """
        try:
            idata = az.from_netcdf(str(path))
        except (OSError, ValueError) as e:
            raise SamplerError(f"Could not load fit from {path}: {e}") from e

        fitted = cls(idata, spec, design)
        stored = {key: idata.posterior.attrs.get(key) for key in fitted.model_key}
        if stored != fitted.model_key:
            raise StaleFitError(
                f"Fit at {path} was drawn from {stored}, requested {fitted.model_key}"
            )
        return fitted
