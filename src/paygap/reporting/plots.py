"""
Generates and saves the report figures.

Covers the simulated data (salary by group, band occupancy), the fit
(trace plot, conditional effects) and the hypothesis posteriors.
"""

import logging
import re
from pathlib import Path
from typing import Dict, Optional, Union

import matplotlib

matplotlib.use("Agg")

import arviz as az
import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

from ..modeling.fitted import FittedModel
from ..modeling.hypothesis import HypothesisResult
from ..synthetic.banding import SalaryBands, band_occupancy

logger = logging.getLogger(__name__)

# --- Global Plotting Style Configuration ---
sns.set_theme(style="whitegrid")
plt.rcParams["figure.figsize"] = (10, 6)
plt.rcParams["axes.titlesize"] = 14
plt.rcParams["axes.labelsize"] = 11

PathLike = Union[str, Path]


def save_figure(fig, base_filename: str, output_dir: PathLike) -> Path:
    """Saves a Matplotlib figure as PNG into the output directory and closes it."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    chart_path = output_dir / f"{base_filename}.png"
    fig.savefig(chart_path, bbox_inches="tight", dpi=150)
    plt.close(fig)
    logger.debug(f"Saved figure {chart_path}")
    return chart_path


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", text.lower()).strip("_")


def plot_salary_by_group(df: pd.DataFrame, output_dir: PathLike, filename: str = "salary_by_group") -> Path:
    """True salary distribution per gender x role_type."""
    fig, ax = plt.subplots()
    sns.boxplot(data=df, x="role_type", y="salary", hue="gender", ax=ax)
    ax.set_title("Simulated salary by role type and gender")
    ax.set_xlabel("Role type")
    ax.set_ylabel("Salary")
    ax.ticklabel_format(style="plain", axis="y")
    return save_figure(fig, filename, output_dir)


def plot_band_occupancy(
    df: pd.DataFrame,
    output_dir: PathLike,
    bands: Optional[SalaryBands] = None,
    filename: str = "band_occupancy",
) -> Path:
    """Number of employees per reported salary band, tails included."""
    counts = band_occupancy(df, bands).rename_axis("band").reset_index(name="count")
    fig, ax = plt.subplots()
    sns.barplot(data=counts, x="band", y="count", color="tab:blue", ax=ax)
    ax.set_title("Employees per salary band")
    ax.set_xlabel("Band")
    ax.set_ylabel("Employees")
    plt.setp(ax.get_xticklabels(), rotation=45, ha="right")
    return save_figure(fig, filename, output_dir)


def plot_trace(fitted: FittedModel, output_dir: PathLike, filename: str = "trace") -> Path:
    """Trace and marginal posterior of each named coefficient."""
    var_names = list(fitted.coefficient_vars.values())
    axes = az.plot_trace(fitted.idata, var_names=var_names, compact=True)
    fig = axes.ravel()[0].figure
    fig.tight_layout()
    return save_figure(fig, filename, output_dir)


def plot_conditional_effects(
    effects: pd.DataFrame,
    effect: str,
    output_dir: PathLike,
    filename: Optional[str] = None,
) -> Path:
    """
    Conditional effect with its credible band.

    Categorical x axes are drawn as point ranges, continuous ones as a line
    with a shaded interval; a second predictor becomes the hue.
    """
    variables = effect.split(":")
    x = variables[0]
    hue = variables[1] if len(variables) > 1 else None
    fig, ax = plt.subplots()

    groups = effects.groupby(hue, sort=False) if hue else [(None, effects)]
    palette = sns.color_palette("tab10")
    for i, (label, part) in enumerate(groups):
        color = palette[i % len(palette)]
        if pd.api.types.is_numeric_dtype(part[x]) and part[x].nunique() > 10:
            ax.plot(part[x], part["estimate"], color=color, label=label)
            ax.fill_between(part[x], part["lower"], part["upper"], color=color, alpha=0.2)
        else:
            ax.errorbar(
                part[x].astype(str),
                part["estimate"],
                yerr=[part["estimate"] - part["lower"], part["upper"] - part["estimate"]],
                fmt="o",
                capsize=4,
                color=color,
                label=label,
            )

    ax.set_title(f"Conditional effect of {effect}")
    ax.set_xlabel(x)
    ax.set_ylabel("Expected salary")
    ax.ticklabel_format(style="plain", axis="y")
    if hue:
        ax.legend(title=hue)
    return save_figure(fig, filename or f"conditional_{_slug(effect)}", output_dir)


def plot_hypothesis(result: HypothesisResult, output_dir: PathLike, filename: Optional[str] = None) -> Path:
    """Posterior of lhs - rhs with its interval and zero marked."""
    fig, ax = plt.subplots()
    sns.histplot(result.draws, kde=True, ax=ax, color="tab:purple")
    ax.axvline(0.0, color="black", linestyle="--", linewidth=1)
    ax.axvspan(result.lower, result.upper, color="tab:purple", alpha=0.1)
    ax.set_title(result.expression)
    ax.set_xlabel("Posterior of difference")
    return save_figure(fig, filename or f"hypothesis_{_slug(result.expression)}", output_dir)


def render_report_figures(
    banded: pd.DataFrame,
    output_dir: PathLike,
    bands: Optional[SalaryBands] = None,
    fitted: Optional[FittedModel] = None,
    effects: Optional[Dict[str, pd.DataFrame]] = None,
    hypotheses: Optional[Dict[str, HypothesisResult]] = None,
) -> Dict[str, Path]:
    """Render every figure the available results allow."""
    figures_dir = Path(output_dir) / "figures"
    paths = {
        "salary_by_group": plot_salary_by_group(banded, figures_dir),
        "band_occupancy": plot_band_occupancy(banded, figures_dir, bands),
    }
    if fitted is not None:
        paths["trace"] = plot_trace(fitted, figures_dir)
    for effect, table in (effects or {}).items():
        paths[f"conditional_{effect}"] = plot_conditional_effects(table, effect, figures_dir)
    for expression, result in (hypotheses or {}).items():
        paths[f"hypothesis_{expression}"] = plot_hypothesis(result, figures_dir)
    logger.info(f"Rendered {len(paths)} figures into {figures_dir}")
    return paths
