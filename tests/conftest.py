"""Root conftest.py - shared fixtures for the pay gap test suite.

This module provides:
1. The default simulated table (seed 42, 500 employees) and its banded form
2. An assembled model specification built from that table
3. make_posterior / make_fitted factories that build InferenceData with the
   variable names and dims the PyMC sampler produces, without sampling

Usage:
    def test_something(spec, make_fitted):
        fitted = make_fitted(spec, Intercept=50000.0)
        fitted.hypothesis("genderwoman = 0")

Tests that really sample are marked ``slow`` and deselected by default
(see ``addopts`` in pyproject.toml); run them with ``pytest -m slow``.
"""

from typing import Any, Dict

import arviz as az
import numpy as np
import pandas as pd
import pytest

from paygap.config import ResponseFamily, SamplerSettings
from paygap.modeling.design import ModelDesign
from paygap.modeling.fitted import FittedModel
from paygap.modeling.specification import assemble_model_specification
from paygap.synthetic.banding import band_salaries
from paygap.synthetic.generators import EmployeeGenerator, GeneratorConfig
from paygap.utils.logging_config import clear_run_context

N_CHAINS = 2
N_DRAWS = 200


@pytest.fixture(autouse=True)
def clear_context():
    """Clear run context before and after each test."""
    clear_run_context()
    yield
    clear_run_context()


@pytest.fixture(scope="session")
def employees() -> pd.DataFrame:
    """Default simulation: seed 42, 500 employees."""
    return EmployeeGenerator(GeneratorConfig(seed=42, n_records=500)).generate()


@pytest.fixture(scope="session")
def banded(employees) -> pd.DataFrame:
    return band_salaries(employees)


@pytest.fixture
def spec(banded):
    return assemble_model_specification(
        banded,
        sampler=SamplerSettings(chains=N_CHAINS, cores=1, warmup=100, iterations=100 + N_DRAWS, seed=1),
    )


@pytest.fixture
def small_frame() -> pd.DataFrame:
    """Four hand-written employees, one per group."""
    return pd.DataFrame(
        {
            "employee_id": ["emp_00000", "emp_00001", "emp_00002", "emp_00003"],
            "unmeasured_confounder": [0.1, -0.4, 1.2, 0.0],
            "years_since_start": [0, 3, 7, 12],
            "percentage_fte": [0.5, 0.8, 0.9, 0.7],
            "gender": ["man", "man", "woman", "woman"],
            "level": [1, 2, 3, 2],
            "role_type": ["research", "support", "research", "support"],
            "salary": [55000.0, 60000.0, 49999.0, 200000.0],
        }
    )


def _posterior_dict(spec, design: ModelDesign, seed: int, overrides: Dict[str, Any]) -> Dict[str, np.ndarray]:
    rng = np.random.default_rng(seed)
    size = (N_CHAINS, N_DRAWS)
    n_groups = len(design.groups)
    mo = spec.monotonic.name

    posterior = {
        "Intercept": rng.normal(60000.0, 500.0, size),
        f"bsp_{mo}": rng.normal(8000.0, 200.0, size),
        f"simo_{mo}": rng.dirichlet(np.ones(design.n_steps), size=size),
        "bs": rng.normal(1000.0, 100.0, size + (n_groups,)),
        "sds": np.abs(rng.normal(500.0, 50.0, size + (n_groups,))),
        "zs": rng.normal(0.0, 1.0, size + (n_groups, design.n_basis)),
        "sigma": np.abs(rng.normal(5000.0, 100.0, size)),
    }
    for name in design.fixed_names:
        posterior[f"b_{name}"] = rng.normal(0.0, 300.0, size)
    if spec.family == ResponseFamily.SKEW_NORMAL:
        posterior["alpha"] = rng.normal(2.0, 0.2, size)

    for name, value in overrides.items():
        template = posterior[name]
        posterior[name] = np.broadcast_to(np.asarray(value, dtype=float), template.shape).copy()
    return posterior


@pytest.fixture
def make_posterior():
    """
    Factory for InferenceData shaped like a PyMC fit.

    Keyword overrides replace a variable's draws; scalars are broadcast over
    (chain, draw[, dims]).
    """

    def _make(spec, seed: int = 0, sample_stats: Dict[str, np.ndarray] = None, **overrides):
        design = ModelDesign(spec)
        posterior = _posterior_dict(spec, design, seed, overrides)
        return az.from_dict(
            posterior=posterior,
            sample_stats=sample_stats,
            coords={
                "group": design.groups,
                "basis": list(range(design.n_basis)),
                "level_step": list(range(design.n_steps)),
            },
            dims={
                f"simo_{spec.monotonic.name}": ["level_step"],
                "bs": ["group"],
                "sds": ["group"],
                "zs": ["group", "basis"],
            },
        )

    return _make


@pytest.fixture
def make_fitted(make_posterior):
    """Factory for FittedModel over a fake posterior."""

    def _make(spec, seed: int = 0, sample_stats: Dict[str, np.ndarray] = None, **overrides):
        return FittedModel(make_posterior(spec, seed=seed, sample_stats=sample_stats, **overrides), spec)

    return _make


@pytest.fixture
def zero_effects():
    """Overrides that switch off every term except the intercept."""

    def _make(spec) -> Dict[str, float]:
        overrides = {f"b_{name}": 0.0 for name in spec.fixed_effect_names}
        overrides.update(
            {
                "Intercept": 50000.0,
                f"bsp_{spec.monotonic.name}": 0.0,
                "bs": 0.0,
                "sds": 1.0,
                "zs": 0.0,
            }
        )
        return overrides

    return _make
