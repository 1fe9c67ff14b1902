"""
Measurement-Error Regression

Assembles the model specification, evaluates fitted posteriors and
hypotheses. The PyMC sampler lives in ``paygap.modeling.sampler`` and is
imported on demand.
"""

from .hypothesis import HypothesisResult, evaluate_hypothesis
from .priors import Prior, PriorSet, default_priors
from .specification import ModelSpecification, assemble_model_specification

__all__ = [
    "ModelSpecification",
    "assemble_model_specification",
    "Prior",
    "PriorSet",
    "default_priors",
    "HypothesisResult",
    "evaluate_hypothesis",
]
