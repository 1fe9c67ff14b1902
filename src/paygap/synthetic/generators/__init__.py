"""
Synthetic Data Generators

- EmployeeGenerator: employees drawn from the pay gap causal diagram
"""

from .base import BaseGenerator, GenerationResult, GeneratorConfig
from .employee_generator import EmployeeGenerator, linear_predictor, term_contributions

__all__ = [
    "BaseGenerator",
    "GeneratorConfig",
    "GenerationResult",
    "EmployeeGenerator",
    "linear_predictor",
    "term_contributions",
]
