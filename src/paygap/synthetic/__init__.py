"""
Synthetic Employee Data

Simulates employees from the pay gap causal diagram and coarsens their
salaries into reported bands.

Key Features:
- Per-record random streams: bit-reproducible for a seed, batch-independent
- Causal diagram checked (networkx) before any draw
- Explicit tail policy for salaries outside the finite bands
"""

from .banding import SalaryBands, band_salaries
from .dag import CausalDiagram
from .generators import EmployeeGenerator, GeneratorConfig

__all__ = [
    "CausalDiagram",
    "EmployeeGenerator",
    "GeneratorConfig",
    "SalaryBands",
    "band_salaries",
]
