"""
Prior declarations for the measurement-error regression.

Priors are plain data; the sampler translates them into its own
distribution objects.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from ..config import ResponseFamily
from ..exceptions import ModelSpecificationError

SUPPORTED_DISTRIBUTIONS = {
    "normal": 2,  # mu, sigma
    "student_t": 3,  # nu, mu, sigma
    "half_normal": 1,  # sigma
    "half_student_t": 2,  # nu, sigma
}

PARAMETER_CLASSES = {"Intercept", "b", "bsp", "bs", "sds", "sigma", "alpha"}
POSITIVE_CLASSES = {"sds", "sigma"}


@dataclass(frozen=True)
class Prior:
    """
    One prior statement.

    ``param_class`` names a group of parameters (``b`` for fixed slopes,
    ``bsp`` for the monotonic effect, ``bs``/``sds`` for the spline terms);
    ``coef`` narrows it to one coefficient.
    """

    distribution: str
    params: Tuple[float, ...]
    param_class: str
    coef: Optional[str] = None

    def __post_init__(self):
        if self.distribution not in SUPPORTED_DISTRIBUTIONS:
            raise ModelSpecificationError(f"Unsupported prior distribution: {self.distribution}")
        if len(self.params) != SUPPORTED_DISTRIBUTIONS[self.distribution]:
            raise ModelSpecificationError(
                f"{self.distribution} prior takes {SUPPORTED_DISTRIBUTIONS[self.distribution]} "
                f"parameters, got {len(self.params)}"
            )
        if self.param_class not in PARAMETER_CLASSES:
            raise ModelSpecificationError(f"Unknown parameter class: {self.param_class}")
        if self.param_class in POSITIVE_CLASSES and not self.distribution.startswith("half_"):
            raise ModelSpecificationError(
                f"Class '{self.param_class}' is a scale parameter and needs a half_* prior"
            )

    def __str__(self) -> str:
        args = ", ".join(f"{p:g}" for p in self.params)
        target = f"class = {self.param_class}"
        if self.coef:
            target += f", coef = {self.coef}"
        return f"{self.distribution}({args}), {target}"


class PriorSet:
    """Ordered collection of priors with coefficient-over-class resolution."""

    def __init__(self, priors: Iterable[Prior]):
        self.priors: List[Prior] = list(priors)

    def __iter__(self):
        return iter(self.priors)

    def __len__(self) -> int:
        return len(self.priors)

    def resolve(self, param_class: str, coef: Optional[str] = None) -> Prior:
        """
        Prior for a parameter: the coefficient-specific statement if there is
        one, else the class-level statement.

        Raises:
            ModelSpecificationError: if neither exists
        """
        class_level = None
        for prior in self.priors:
            if prior.param_class != param_class:
                continue
            if coef is not None and prior.coef == coef:
                return prior
            if prior.coef is None:
                class_level = prior
        if class_level is None:
            raise ModelSpecificationError(f"No prior for class '{param_class}' (coef={coef})")
        return class_level

    def override(self, priors: Iterable[Prior]) -> "PriorSet":
        """Replace statements with the same (class, coef) target."""
        replacements = {(p.param_class, p.coef): p for p in priors}
        merged = [replacements.pop((p.param_class, p.coef), p) for p in self.priors]
        merged.extend(replacements.values())
        return PriorSet(merged)


def default_priors(
    family: ResponseFamily = ResponseFamily.GAUSSIAN,
    baseline_salary: float = 90000.0,
) -> PriorSet:
    """
    Weakly-informative defaults.

    The intercept is wide and centred near the expected baseline salary;
    slopes are centred at zero with a wide spread.
    """
    priors = [
        Prior("normal", (baseline_salary, 50000.0), "Intercept"),
        Prior("normal", (0.0, 20000.0), "b"),
        Prior("normal", (0.0, 20000.0), "bsp"),
        Prior("normal", (0.0, 20000.0), "bs"),
        Prior("half_student_t", (3.0, 20000.0), "sds"),
        Prior("half_student_t", (3.0, 20000.0), "sigma"),
    ]
    if ResponseFamily(family) == ResponseFamily.SKEW_NORMAL:
        priors.append(Prior("normal", (0.0, 4.0), "alpha"))
    return PriorSet(priors)
