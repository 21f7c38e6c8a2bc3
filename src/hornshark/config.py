"""Configuration dataclasses for hornshark."""

import os
from dataclasses import dataclass, field


@dataclass(frozen=True)
class DensityConfig:
    """Worker pool configuration for the density evaluator."""
    n_workers: int | None = None  # None -> all available cores
    min_rows_per_block: int = 1

    @property
    def effective_n_workers(self) -> int:
        if self.n_workers is not None:
            return self.n_workers
        return os.cpu_count() or 1


@dataclass(frozen=True)
class HMMConfig:
    """Likelihood evaluation configuration."""
    stationary: bool = False  # Use stationary distribution as init
    density: DensityConfig = field(default_factory=DensityConfig)


# Default 2-state bivariate example model
# States: Calm (tight around origin), Active (shifted, wider spread)
DEFAULT_INIT_PROBS = [0.5, 0.5]

DEFAULT_TRANS = [
    [0.95, 0.05],  # Calm
    [0.10, 0.90],  # Active
]

DEFAULT_MEANS = [
    [0.0, 0.0],
    [3.0, -1.0],
]

DEFAULT_COVARIANCES = [
    [[1.0, 0.3], [0.3, 1.0]],
    [[2.0, -0.5], [-0.5, 1.5]],
]
