"""
Pay Gap Analysis Pipeline.

    simulate -> validate -> band -> validate -> assemble -> fit -> report

Each stage is a pure transform of the previous stage's output except the
fit, which is delegated to a Sampler and cached by path.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import pandas as pd

from .config import DEFAULT_STRUCTURAL_EQUATIONS, AnalysisSettings, StructuralEquations
from .modeling.fitted import FitDiagnostics, FittedModel, fit_cache_path
from .modeling.hypothesis import HypothesisResult
from .modeling.specification import ModelSpecification, assemble_model_specification
from .synthetic.banding import SalaryBands, band_salaries
from .synthetic.generators import EmployeeGenerator, GeneratorConfig
from .synthetic.stats import DatasetStats, compute_dataset_stats
from .synthetic.validation import require_valid
from .utils.logging_config import set_run_context, timed_operation

logger = logging.getLogger(__name__)

CONDITIONAL_EFFECTS = [
    "gender:role_type",
    "level",
    "percentage_std",
    "years_since_start:group_label",
]


@dataclass
class AnalysisResult:
    """Everything one run produced."""

    settings: AnalysisSettings
    employees: pd.DataFrame
    banded: pd.DataFrame
    stats: DatasetStats
    spec: ModelSpecification
    cache_path: Optional[Path] = None
    fitted: Optional[FittedModel] = None
    diagnostics: Optional[FitDiagnostics] = None
    hypotheses: Dict[str, HypothesisResult] = field(default_factory=dict)
    effects: Dict[str, pd.DataFrame] = field(default_factory=dict)
    figures: Dict[str, Path] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        summary: Dict[str, Any] = {
            "settings": self.settings.to_dict(),
            "data": self.stats.to_dict(),
            "model": self.spec.describe(),
            "cache_path": str(self.cache_path) if self.cache_path else None,
        }
        if self.fitted is not None:
            summary["coefficients"] = self.fitted.summary().reset_index().to_dict(orient="records")
        if self.diagnostics is not None:
            summary["diagnostics"] = self.diagnostics.to_dict()
        summary["hypotheses"] = [h.to_dict() for h in self.hypotheses.values()]
        summary["figures"] = {k: str(v) for k, v in self.figures.items()}
        return summary


def run_id(settings: AnalysisSettings) -> str:
    return f"{settings.model_version}_seed{settings.seed}_n{settings.n}"


def simulate_employees(
    settings: AnalysisSettings,
    equations: StructuralEquations = DEFAULT_STRUCTURAL_EQUATIONS,
) -> pd.DataFrame:
    """Simulate and validate the employee table for a run."""
    generator = EmployeeGenerator(GeneratorConfig(seed=settings.seed, n_records=settings.n), equations)
    return require_valid(generator.generate(), "employees")


def run_analysis(
    settings: AnalysisSettings,
    sampler=None,
    bands: Optional[SalaryBands] = None,
    equations: StructuralEquations = DEFAULT_STRUCTURAL_EQUATIONS,
) -> AnalysisResult:
    """
    Run the full analysis.

    Args:
        settings: Resolved run configuration
        sampler: Object implementing Sampler; a PyMCSampler if not provided
        bands: Salary band schedule; the default 50k-200k schedule if not provided
        equations: Structural equations of the simulation

    Returns:
        AnalysisResult. With settings.skip_fit the run stops after the
        specification is assembled.
    """
    bands = bands or SalaryBands()
    set_run_context(run_id=run_id(settings))
    output_dir = Path(settings.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    with timed_operation("simulate", logger):
        employees = simulate_employees(settings, equations)
    logger.info(f"Simulated {len(employees)} employees (seed={settings.seed})")

    with timed_operation("band", logger):
        banded = require_valid(band_salaries(employees, bands, settings.tail_policy), "banded_employees")
    stats = compute_dataset_stats(banded)
    banded.to_csv(output_dir / f"employees_{run_id(settings)}.csv", index=False)

    with timed_operation("assemble", logger):
        spec = assemble_model_specification(
            banded,
            family=settings.family,
            sampler=settings.sampler,
            adjust_for_confounder=settings.adjust_for_confounder,
            spline_df=settings.spline_df,
            version=settings.model_version,
        )

    result = AnalysisResult(settings=settings, employees=employees, banded=banded, stats=stats, spec=spec)

    if not settings.skip_fit:
        if sampler is None:
            from .modeling.sampler import PyMCSampler

            sampler = PyMCSampler()

        result.cache_path = fit_cache_path(output_dir, settings.model_version, settings.seed, settings.n)
        with timed_operation("fit", logger):
            result.fitted = sampler.fit(spec, result.cache_path)

        result.diagnostics = result.fitted.diagnostics()
        for expression in settings.hypotheses:
            result.hypotheses[expression] = result.fitted.hypothesis(expression)
            logger.info(f"Hypothesis {expression}: {result.hypotheses[expression].to_dict()}")
        for effect in CONDITIONAL_EFFECTS:
            result.effects[effect] = result.fitted.conditional_effects(effect)

    if settings.make_plots:
        from .reporting.plots import render_report_figures

        with timed_operation("report", logger):
            result.figures = render_report_figures(
                banded,
                output_dir,
                bands=bands,
                fitted=result.fitted,
                effects=result.effects,
                hypotheses=result.hypotheses,
            )

    summary_path = output_dir / f"summary_{run_id(settings)}.json"
    with open(summary_path, "w") as f:
        json.dump(result.to_dict(), f, indent=2, default=str)
    logger.info(f"Wrote {summary_path}")
    return result
