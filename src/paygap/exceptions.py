"""
Exception hierarchy for the pay gap analysis pipeline.

Every stage raises a subclass of PaygapError so callers (the CLI, tests)
can distinguish configuration problems from data problems.
"""


class PaygapError(Exception):
    """Base class for all pipeline errors."""


class SimulationConfigError(PaygapError):
    """Structural-equation parameters or the causal diagram are inconsistent."""


class BandingError(PaygapError):
    """A salary could not be assigned to a band."""


class UnboundedBandError(BandingError):
    """A salary fell into an open tail band under the reject policy."""

    def __init__(self, n_unbounded: int, lowest: float, highest: float):
        self.n_unbounded = n_unbounded
        self.lowest = lowest
        self.highest = highest
        super().__init__(
            f"{n_unbounded} salaries fall outside the finite bands "
            f"[{lowest:,.0f}, {highest:,.0f})"
        )


class SchemaValidationError(PaygapError):
    """A table failed its pandera schema."""

    def __init__(self, table_name: str, errors):
        self.table_name = table_name
        self.errors = errors
        super().__init__(f"{table_name} failed schema validation: {errors}")


class ModelSpecificationError(PaygapError):
    """The model specification cannot be built from the given data."""


class SamplerError(PaygapError):
    """The external sampler failed or a cached fit could not be loaded."""


class HypothesisError(PaygapError):
    """A hypothesis expression is malformed or references unknown coefficients."""


class StaleFitError(SamplerError):
    """A cached fit was drawn from a different formula or family."""
