"""
Pay Gap Analysis

Simulates an organisation from a causal diagram with an unmeasured
confounder, bands the simulated salaries, and estimates the gender pay gap
with a Bayesian measurement-error regression.
"""

from .config import AnalysisSettings, SamplerSettings

__all__ = ["AnalysisSettings", "SamplerSettings"]

__version__ = "1.0.0"
