"""
External Bayesian sampler.

The pipeline only depends on the Sampler protocol: take a specification and
a cache path, return a FittedModel. If a fit already exists at the cache
path and was drawn from the same formula and family, it is loaded instead
of re-sampled; otherwise the model is sampled again and the cache overwritten.

PyMCSampler is the concrete implementation:

    y_i ~ Normal(mu_i, sqrt(sigma^2 + se_i^2))           (or SkewNormal)
    mu_i = Intercept + X_i b
           + bsp * D * sum_{k <= level_i} simo_k             monotonic level
           + bs[g_i] * t_i + sum_j B_ij * sds[g_i] * zs[g_i, j]   spline per group
"""

import logging
from pathlib import Path
from typing import Optional, Protocol, Union

import numpy as np
import pymc as pm
import pytensor.tensor as pt

from ..config import ResponseFamily
from ..exceptions import SamplerError, StaleFitError
from .design import ModelDesign
from .fitted import FittedModel, fit_cache_path  # noqa: F401
from .priors import Prior
from .specification import ModelSpecification

logger = logging.getLogger(__name__)


class Sampler(Protocol):
    """Anything that can turn a specification into a fitted model."""

    def fit(
        self,
        spec: ModelSpecification,
        cache_path: Optional[Union[str, Path]] = None,
    ) -> FittedModel:
        ...


def prior_variable(name: str, prior: Prior, **kwargs):
    """Create a PyMC random variable from a Prior statement (inside a model context)."""
    p = prior.params
    if prior.distribution == "normal":
        return pm.Normal(name, mu=p[0], sigma=p[1], **kwargs)
    if prior.distribution == "student_t":
        return pm.StudentT(name, nu=p[0], mu=p[1], sigma=p[2], **kwargs)
    if prior.distribution == "half_normal":
        return pm.HalfNormal(name, sigma=p[0], **kwargs)
    if prior.distribution == "half_student_t":
        return pm.HalfStudentT(name, nu=p[0], sigma=p[1], **kwargs)
    raise SamplerError(f"No PyMC mapping for prior '{prior.distribution}'")


class PyMCSampler:
    """
    NUTS sampling with PyMC.

    Usage:
        sampler = PyMCSampler()
        fitted = sampler.fit(spec, fit_cache_path("output", "v1", 42, 500))
    """

    def __init__(self, progressbar: bool = False):
        self.progressbar = progressbar

    def build_model(self, spec: ModelSpecification, design: Optional[ModelDesign] = None) -> pm.Model:
        design = design or ModelDesign(spec)
        data = spec.data
        priors = spec.priors
        mo = spec.monotonic.name

        X = design.fixed_matrix(data)
        level_idx = design.level_index(data)
        g = design.group_index(data)
        basis = design.spline_basis(data)
        t = design.smooth_linear(data)
        y = design.response(data)
        se = design.measurement_error(data)

        coords = {
            "group": design.groups,
            "basis": list(range(design.n_basis)),
            "level_step": list(range(design.n_steps)),
            "obs": list(range(len(data))),
        }

        with pm.Model(coords=coords) as model:
            intercept = prior_variable("Intercept", priors.resolve("Intercept"))
            mu = intercept
            for j, name in enumerate(design.fixed_names):
                b = prior_variable(f"b_{name}", priors.resolve("b", name))
                mu = mu + b * X[:, j]

            bsp = prior_variable(f"bsp_{mo}", priors.resolve("bsp", mo))
            simo = pm.Dirichlet(f"simo_{mo}", a=np.ones(design.n_steps), dims="level_step")
            cumulative = pt.concatenate([pt.zeros(1), pt.cumsum(simo)])
            mu = mu + bsp * design.n_steps * cumulative[level_idx]

            bs = prior_variable("bs", priors.resolve("bs"), dims="group")
            sds = prior_variable("sds", priors.resolve("sds"), dims="group")
            zs = pm.Normal("zs", mu=0.0, sigma=1.0, dims=("group", "basis"))
            weights = sds[:, None] * zs
            mu = mu + bs[g] * t + (weights[g] * basis).sum(axis=1)

            sigma = prior_variable("sigma", priors.resolve("sigma"))
            total_sd = pt.sqrt(sigma**2 + se**2)

            if spec.family == ResponseFamily.SKEW_NORMAL:
                alpha = prior_variable("alpha", priors.resolve("alpha"))
                pm.SkewNormal("y", mu=mu, sigma=total_sd, alpha=alpha, observed=y, dims="obs")
            else:
                pm.Normal("y", mu=mu, sigma=total_sd, observed=y, dims="obs")

        return model

    def fit(
        self,
        spec: ModelSpecification,
        cache_path: Optional[Union[str, Path]] = None,
    ) -> FittedModel:
        """
        Fit the specification, or load the fit persisted at ``cache_path``.

        Sampling blocks until all chains finish. Convergence problems are
        left for FittedModel.diagnostics() to report.
        """
        design = ModelDesign(spec)
        if cache_path is not None and Path(cache_path).exists():
            try:
                fitted = FittedModel.load(cache_path, spec, design)
            except StaleFitError as e:
                logger.warning(f"{e}; refitting")
            else:
                logger.info(f"Loaded cached fit from {cache_path}; skipping sampling")
                return fitted

        settings = spec.sampler
        if settings.draws <= 0:
            raise SamplerError(
                f"iterations ({settings.iterations}) must exceed warmup ({settings.warmup})"
            )

        model = self.build_model(spec, design)
        logger.info(
            f"Sampling {settings.chains} chains x {settings.draws} draws "
            f"(warmup {settings.warmup}, seed {settings.seed})"
        )
        with model:
            idata = pm.sample(
                draws=settings.draws,
                tune=settings.warmup,
                chains=settings.chains,
                cores=settings.cores,
                random_seed=settings.seed,
                target_accept=settings.target_accept,
                progressbar=self.progressbar,
            )

        fitted = FittedModel(idata, spec, design)
        if cache_path is not None:
            fitted.save(cache_path)
        return fitted
