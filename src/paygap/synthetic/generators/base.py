"""
Base Generator for Synthetic Data.

Provides common functionality for all entity generators.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

import numpy as np
import pandas as pd

from ...exceptions import SimulationConfigError

logger = logging.getLogger(__name__)


@dataclass
class GeneratorConfig:
    """Configuration for a data generator."""

    seed: int = 42
    batch_size: int = 1000
    n_records: int = 500
    verbose: bool = False


@dataclass
class GenerationResult:
    """Result of data generation."""

    df: pd.DataFrame
    entity_type: str
    n_records: int
    generation_time: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        """Check if generation produced valid data."""
        return self.df is not None and len(self.df) == self.n_records


class BaseGenerator(ABC):
    """
    Abstract base class for synthetic data generators.

    Records are generated independently: record ``i`` draws from its own
    random stream derived from ``(seed, i)``, so any slice of records can be
    produced on its own and still match a full run.
    """

    def __init__(self, config: Optional[GeneratorConfig] = None):
        """
        Initialize the generator.

        Args:
            config: Generator configuration. Uses defaults if not provided.

        Raises:
            SimulationConfigError: if the record count or batch size is not positive
        """
        self.config = config or GeneratorConfig()
        if self.config.n_records <= 0:
            raise SimulationConfigError(f"n_records must be positive, got {self.config.n_records}")
        if self.config.batch_size <= 0:
            raise SimulationConfigError(f"batch_size must be positive, got {self.config.batch_size}")

    @property
    @abstractmethod
    def entity_type(self) -> str:
        """Return the entity type being generated."""

    @abstractmethod
    def _generate_range(self, start: int, stop: int) -> pd.DataFrame:
        """Generate records with indices in [start, stop)."""

    def generate(self) -> pd.DataFrame:
        """
        Generate synthetic data.

        Returns:
            DataFrame containing generated records.
        """
        return self._generate_range(0, self.config.n_records)

    def generate_batched(self) -> Iterator[pd.DataFrame]:
        """
        Generate data in batches for memory efficiency.

        Yields:
            DataFrames of at most batch_size records each. Concatenated, they
            equal generate().
        """
        total_records = self.config.n_records
        for start in range(0, total_records, self.config.batch_size):
            stop = min(start + self.config.batch_size, total_records)
            yield self._generate_range(start, stop)

    def generate_with_result(self) -> GenerationResult:
        """
        Generate data and return with metadata.

        Returns:
            GenerationResult with data and generation info.
        """
        start_time = time.time()
        df = self.generate()
        elapsed = time.time() - start_time

        return GenerationResult(
            df=df,
            entity_type=self.entity_type,
            n_records=self.config.n_records,
            generation_time=elapsed,
            metadata={"seed": self.config.seed, **df.attrs},
        )

    def _record_rng(self, index: int) -> np.random.Generator:
        """Random stream for one record, reproducible from (seed, index)."""
        return np.random.default_rng(np.random.SeedSequence(self.config.seed, spawn_key=(index,)))

    def _generate_ids(self, prefix: str, start: int, stop: int, width: int = 5) -> List[str]:
        """Generate sequential IDs with prefix."""
        return [f"{prefix}_{i:0{width}d}" for i in range(start, stop)]

    def _log(self, message: str) -> None:
        """Log at INFO in verbose mode, DEBUG otherwise."""
        level = logging.INFO if self.config.verbose else logging.DEBUG
        logger.log(level, f"[{self.entity_type}] {message}")
