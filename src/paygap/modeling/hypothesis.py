"""
Linear hypotheses over posterior draws.

An expression such as

    "genderwoman + genderwoman:role_typesupport = genderwoman"

is evaluated draw by draw as ``lhs - rhs``. The result carries the full
vector of draws plus its mean, sd and central interval. One-sided
hypotheses (``<``, ``>``) also report the posterior probability that they
hold.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from ..exceptions import HypothesisError

# Coefficient names may contain ':' (interactions); a name never starts
# right after a digit, so "1e3" stays a number.
_NAME = re.compile(r"(?<![\w.])[A-Za-z_][A-Za-z0-9_.]*(?::[A-Za-z_][A-Za-z0-9_.]*)*")
_COMPARISON = re.compile(r"(<=|>=|==|!=|<|>|=)")


@dataclass
class HypothesisResult:
    """Posterior of ``lhs - rhs`` for one hypothesis."""

    expression: str
    direction: str
    draws: np.ndarray
    estimate: float
    std_error: float
    lower: float
    upper: float
    prob: float
    post_prob: Optional[float] = None

    @property
    def supported(self) -> bool:
        """Interval excludes zero (two-sided) or post_prob exceeds prob (one-sided)."""
        if self.post_prob is None:
            return self.lower > 0 or self.upper < 0
        return self.post_prob > self.prob

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hypothesis": self.expression,
            "estimate": self.estimate,
            "std_error": self.std_error,
            "lower": self.lower,
            "upper": self.upper,
            "prob": self.prob,
            "post_prob": self.post_prob,
            "supported": self.supported,
        }


def _split(expression: str):
    parts = _COMPARISON.split(expression)
    if len(parts) != 3:
        raise HypothesisError(
            f"Hypothesis must contain exactly one of '=', '<', '>': {expression!r}"
        )
    lhs, op, rhs = (p.strip() for p in parts)
    if op not in ("=", "<", ">"):
        raise HypothesisError(f"Unsupported comparison '{op}' in {expression!r}")
    if not lhs or not rhs:
        raise HypothesisError(f"Both sides of {expression!r} must be non-empty")
    return lhs, op, rhs


def evaluate_hypothesis(
    draws: pd.DataFrame,
    expression: str,
    prob: float = 0.95,
) -> HypothesisResult:
    """
    Evaluate a hypothesis over coefficient draws.

    Args:
        draws: One column per coefficient, one row per posterior draw
        expression: "<lhs> = <rhs>", "<lhs> < <rhs>" or "<lhs> > <rhs>"
        prob: Mass of the central interval

    Raises:
        HypothesisError: malformed expression or unknown coefficient
    """
    if not 0 < prob < 1:
        raise HypothesisError(f"prob must be in (0, 1), got {prob}")
    lhs, op, rhs = _split(expression)

    aliases: Dict[str, str] = {}

    def _substitute(match: re.Match) -> str:
        name = match.group(0)
        if name not in draws.columns:
            raise HypothesisError(
                f"Unknown coefficient '{name}'. Available: {list(draws.columns)}"
            )
        aliases.setdefault(name, f"coef_{len(aliases)}")
        return aliases[name]

    rewritten = f"({_NAME.sub(_substitute, lhs)}) - ({_NAME.sub(_substitute, rhs)})"
    if not aliases:
        raise HypothesisError(f"Hypothesis references no coefficients: {expression!r}")

    frame = pd.DataFrame({alias: draws[name].to_numpy(dtype=float) for name, alias in aliases.items()})
    try:
        values = frame.eval(rewritten, engine="python")
    except Exception as e:
        raise HypothesisError(f"Could not evaluate {expression!r}: {e}") from e

    values = np.asarray(values, dtype=float)
    tail = (1 - prob) / 2
    post_prob = None
    if op == ">":
        post_prob = float(np.mean(values > 0))
    elif op == "<":
        post_prob = float(np.mean(values < 0))

    return HypothesisResult(
        expression=expression,
        direction=op,
        draws=values,
        estimate=float(values.mean()),
        std_error=float(values.std(ddof=1)),
        lower=float(np.quantile(values, tail)),
        upper=float(np.quantile(values, 1 - tail)),
        prob=prob,
        post_prob=post_prob,
    )
