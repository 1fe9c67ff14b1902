"""
Numeric design for the measurement-error regression.

Turns a ModelSpecification's data (or any prediction grid shaped like it)
into the arrays the sampler and the posterior predictions use:

- treatment-coded fixed effects (reference: man, research)
- monotonic level index 0..D
- centred B-spline basis over tenure, knots frozen on the fitting data
- standardized tenure for the per-group linear part of the spline
- group index into GROUP_LABELS
"""

from typing import List

import numpy as np
import pandas as pd
from patsy import build_design_matrices, dmatrix

from ..config import GROUP_LABELS
from ..exceptions import ModelSpecificationError
from .specification import CONTRAST_LEVELS, ModelSpecification


class ModelDesign:
    """Column layout of the regression, fixed at construction from the fitting data."""

    def __init__(self, spec: ModelSpecification):
        self.spec = spec
        data = spec.data
        self.fixed_names: List[str] = spec.fixed_effect_names
        self.groups: List[str] = list(GROUP_LABELS)

        levels = data[spec.monotonic.variable].astype(int)
        self.level_min = int(levels.min())
        self.level_max = int(levels.max())
        self.n_steps = self.level_max - self.level_min
        if self.n_steps < 1:
            raise ModelSpecificationError(
                f"Monotonic term needs at least two observed levels, got {self.level_min}"
            )

        x = data[spec.smooth.variable].astype(float)
        self.smooth_mean = float(x.mean())
        self.smooth_sd = float(x.std()) or 1.0
        self.smooth_min = float(x.min())
        self.smooth_max = float(x.max())
        basis = dmatrix(
            f"bs(x, df={spec.smooth.df}, degree=3, include_intercept=False) - 1",
            {"x": x.to_numpy()},
            return_type="matrix",
        )
        self._basis_info = basis.design_info
        self._basis_means = np.asarray(basis).mean(axis=0)

    @property
    def n_basis(self) -> int:
        return self.spec.smooth.df

    def response(self, frame: pd.DataFrame) -> np.ndarray:
        return frame[self.spec.response].to_numpy(dtype=float)

    def measurement_error(self, frame: pd.DataFrame) -> np.ndarray:
        return frame[self.spec.measurement_error].to_numpy(dtype=float)

    def fixed_matrix(self, frame: pd.DataFrame) -> np.ndarray:
        """(n, k) matrix in fixed_names order."""
        columns = {}
        for var in self.spec.categorical_effects:
            name = f"{var}{CONTRAST_LEVELS[var]}"
            columns[name] = (frame[var] == CONTRAST_LEVELS[var]).to_numpy(dtype=float)
        for name in self.fixed_names:
            if ":" in name:
                left, right = name.split(":")
                columns[name] = columns[left] * columns[right]
            elif name not in columns:
                columns[name] = frame[name].to_numpy(dtype=float)
        return np.column_stack([columns[name] for name in self.fixed_names])

    def level_index(self, frame: pd.DataFrame) -> np.ndarray:
        levels = frame[self.spec.monotonic.variable].astype(int).to_numpy()
        if levels.min() < self.level_min or levels.max() > self.level_max:
            raise ModelSpecificationError(
                f"Levels must lie in [{self.level_min}, {self.level_max}] seen during fitting"
            )
        return levels - self.level_min

    def spline_basis(self, frame: pd.DataFrame) -> np.ndarray:
        """(n, n_basis) centred basis evaluated with the fitting knots."""
        x = frame[self.spec.smooth.variable].to_numpy(dtype=float)
        try:
            (basis,) = build_design_matrices([self._basis_info], {"x": x})
        except NotImplementedError as e:
            # patsy cannot extrapolate past the outer knots
            raise ModelSpecificationError(
                f"{self.spec.smooth.variable} must lie within the fitted range "
                f"[{self.smooth_min:g}, {self.smooth_max:g}]"
            ) from e
        return np.asarray(basis) - self._basis_means

    def smooth_linear(self, frame: pd.DataFrame) -> np.ndarray:
        x = frame[self.spec.smooth.variable].to_numpy(dtype=float)
        return (x - self.smooth_mean) / self.smooth_sd

    def group_index(self, frame: pd.DataFrame) -> np.ndarray:
        labels = frame[self.spec.smooth.by].astype(str)
        unknown = set(labels) - set(self.groups)
        if unknown:
            raise ModelSpecificationError(f"Unknown group labels: {sorted(unknown)}")
        lookup = {g: i for i, g in enumerate(self.groups)}
        return labels.map(lookup).to_numpy(dtype=int)
