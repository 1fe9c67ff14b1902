"""
Pay Gap Analysis Configuration

Centralized configuration for the simulation and the regression:
- Structural equations of the causal diagram (intercepts, betas, dispersion)
- Salary band schedule used to coarsen simulated salaries
- Sampler settings handed to the external Bayesian sampler
- AnalysisSettings, resolved once at startup and passed explicitly
"""

import math
import os
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml


# =============================================================================
# ENUMS
# =============================================================================


class Gender(str, Enum):
    """Simulated gender categories."""

    MAN = "man"
    WOMAN = "woman"


class RoleType(str, Enum):
    """Simulated role types."""

    RESEARCH = "research"
    SUPPORT = "support"


class DistributionKind(str, Enum):
    """Distribution families available to structural equations."""

    NORMAL = "normal"
    NEGATIVE_BINOMIAL = "negative_binomial"
    BETA = "beta"
    BINOMIAL = "binomial"
    GAUSSIAN = "gaussian"


class ResponseFamily(str, Enum):
    """Response distributions supported by the regression."""

    GAUSSIAN = "gaussian"
    SKEW_NORMAL = "skew_normal"


class TailPolicy(str, Enum):
    """What to do with salaries that fall into an open tail band."""

    REJECT = "reject"
    MARK_MISSING = "mark_missing"


# Convenience exports
GENDERS = [g.value for g in Gender]
ROLE_TYPES = [r.value for r in RoleType]
GROUP_LABELS = [f"{g}{r}" for g in GENDERS for r in ROLE_TYPES]


# =============================================================================
# STRUCTURAL EQUATIONS
# =============================================================================


@dataclass(frozen=True)
class NodeSpec:
    """
    One structural equation of the causal diagram.

    The linear predictor is ``intercept + sum(beta_i * f_i(parent_i))`` where
    ``f_i`` is the optional transform registered for that parent. Binary
    nodes draw an index into ``categories``; downstream nodes see the
    indicator of ``categories[1]``.
    """

    name: str
    kind: DistributionKind
    parents: Tuple[str, ...] = ()
    intercept: float = 0.0
    betas: Tuple[float, ...] = ()
    transforms: Dict[str, str] = field(default_factory=dict)

    # Negative binomial size parameter
    theta: Optional[float] = None
    # Noise sd for normal / gaussian nodes
    error_sd: Optional[float] = None
    # Beta precision; the mean is expit of the linear predictor
    precision: Optional[float] = None

    offset: int = 0
    round_digits: Optional[int] = None
    categories: Optional[Tuple[str, str]] = None
    description: str = ""


@dataclass(frozen=True)
class StructuralEquations:
    """
    The full data-generating process.

    ``nodes`` are listed in draw order; each record draws its variates in
    exactly this order. ``interaction_effects`` adds a fixed amount to the
    salary of each (gender, role_type) cell after the linear equation.
    """

    nodes: Tuple[NodeSpec, ...]
    interaction_effects: Dict[Tuple[str, str], float]
    outcome: str = "salary"
    version: str = "1.0.0"

    @property
    def draw_order(self) -> List[str]:
        return [node.name for node in self.nodes]

    def get_node(self, name: str) -> NodeSpec:
        for node in self.nodes:
            if node.name == name:
                return node
        raise KeyError(name)

    def interaction_for(self, gender: str, role_type: str) -> float:
        return self.interaction_effects.get((gender, role_type), 0.0)


DEFAULT_STRUCTURAL_EQUATIONS = StructuralEquations(
    nodes=(
        NodeSpec(
            name="unmeasured_confounder",
            kind=DistributionKind.NORMAL,
            intercept=0.0,
            error_sd=1.0,
            description="Latent driver of gender, tenure, level, role and pay",
        ),
        NodeSpec(
            name="years_since_start",
            kind=DistributionKind.NEGATIVE_BINOMIAL,
            parents=("unmeasured_confounder",),
            intercept=math.log(6.0),
            betas=(0.15,),
            theta=2.0,
            description="Tenure in whole years",
        ),
        NodeSpec(
            name="percentage_fte",
            kind=DistributionKind.BETA,
            parents=("unmeasured_confounder",),
            intercept=math.log(4.0),
            betas=(0.2,),
            precision=10.0,
            round_digits=2,
            description="Contracted fraction of full time",
        ),
        NodeSpec(
            name="gender",
            kind=DistributionKind.BINOMIAL,
            parents=("unmeasured_confounder",),
            intercept=0.0,
            betas=(0.5,),
            categories=(Gender.WOMAN.value, Gender.MAN.value),
        ),
        NodeSpec(
            name="level",
            kind=DistributionKind.NEGATIVE_BINOMIAL,
            parents=("gender", "years_since_start", "unmeasured_confounder"),
            intercept=-0.2,
            betas=(0.25, 0.06, 0.3),
            theta=8.0,
            offset=1,
            description="Grade, starting at 1",
        ),
        NodeSpec(
            name="role_type",
            kind=DistributionKind.BINOMIAL,
            parents=("gender", "level", "unmeasured_confounder"),
            intercept=0.5,
            betas=(-0.4, -0.35, -0.3),
            categories=(RoleType.RESEARCH.value, RoleType.SUPPORT.value),
        ),
        NodeSpec(
            name="salary",
            kind=DistributionKind.GAUSSIAN,
            parents=(
                "gender",
                "role_type",
                "level",
                "years_since_start",
                "percentage_fte",
                "unmeasured_confounder",
            ),
            intercept=40000.0,
            betas=(2000.0, -6000.0, 12000.0, 3000.0, 30000.0, 5000.0),
            transforms={"years_since_start": "sqrt"},
            error_sd=6000.0,
        ),
    ),
    interaction_effects={
        (Gender.MAN.value, RoleType.RESEARCH.value): 0.0,
        (Gender.MAN.value, RoleType.SUPPORT.value): 7500.0,
        (Gender.WOMAN.value, RoleType.RESEARCH.value): 0.0,
        (Gender.WOMAN.value, RoleType.SUPPORT.value): 0.0,
    },
)


# =============================================================================
# SALARY BANDS
# =============================================================================

SALARY_BAND_BOUNDARIES: Tuple[float, ...] = tuple(float(b) for b in range(50000, 200001, 10000))


# =============================================================================
# SAMPLER + ANALYSIS SETTINGS
# =============================================================================


@dataclass
class SamplerSettings:
    """Settings forwarded to the external sampler."""

    chains: int = 4
    cores: int = 4
    warmup: int = 1000
    iterations: int = 2000
    seed: Optional[int] = None
    target_accept: float = 0.9

    @property
    def draws(self) -> int:
        """Post-warmup draws per chain."""
        return self.iterations - self.warmup


DEFAULT_HYPOTHESES = [
    "genderwoman = 0",
    "genderwoman + genderwoman:role_typesupport = 0",
    "genderwoman + genderwoman:role_typesupport = genderwoman",
]


@dataclass
class AnalysisSettings:
    """
    Configuration for one analysis run.

    Built once at startup (defaults, YAML file, environment) and passed
    to run_analysis(); nothing reads ambient configuration later.
    """

    seed: int = 42
    n: int = 500
    output_dir: Path = Path("output")
    model_version: str = "v1"
    family: ResponseFamily = ResponseFamily.GAUSSIAN
    tail_policy: TailPolicy = TailPolicy.MARK_MISSING
    adjust_for_confounder: bool = False
    spline_df: int = 5
    make_plots: bool = True
    skip_fit: bool = False
    sampler: SamplerSettings = field(default_factory=SamplerSettings)
    hypotheses: List[str] = field(default_factory=lambda: list(DEFAULT_HYPOTHESES))

    def __post_init__(self):
        self.output_dir = Path(self.output_dir)
        self.family = ResponseFamily(self.family)
        self.tail_policy = TailPolicy(self.tail_policy)
        if isinstance(self.sampler, dict):
            self.sampler = SamplerSettings(**self.sampler)
        if self.sampler.seed is None:
            self.sampler.seed = self.seed

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisSettings":
        known = set(cls.__dataclass_fields__)
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown settings: {sorted(unknown)}")
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "AnalysisSettings":
        """Load settings from a YAML file; missing keys keep their defaults."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    def with_env_overrides(self, environ: Optional[Dict[str, str]] = None) -> "AnalysisSettings":
        """Return a copy with PAYGAP_* environment variables applied."""
        environ = os.environ if environ is None else environ
        updates: Dict[str, Any] = {}
        if "PAYGAP_SEED" in environ:
            updates["seed"] = int(environ["PAYGAP_SEED"])
        if "PAYGAP_N" in environ:
            updates["n"] = int(environ["PAYGAP_N"])
        if "PAYGAP_OUTPUT_DIR" in environ:
            updates["output_dir"] = Path(environ["PAYGAP_OUTPUT_DIR"])
        if "PAYGAP_FAMILY" in environ:
            updates["family"] = ResponseFamily(environ["PAYGAP_FAMILY"])
        sampler = self.sampler
        if "PAYGAP_CHAINS" in environ:
            chains = int(environ["PAYGAP_CHAINS"])
            sampler = replace(sampler, chains=chains, cores=min(sampler.cores, chains))
        if "seed" in updates and self.sampler.seed == self.seed:
            sampler = replace(sampler, seed=updates["seed"])
        return replace(self, sampler=sampler, **updates)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "AnalysisSettings":
        """Defaults with PAYGAP_* environment overrides."""
        return cls().with_env_overrides(environ)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["output_dir"] = str(self.output_dir)
        data["family"] = self.family.value
        data["tail_policy"] = self.tail_policy.value
        return data
