"""
Emission distributions for profile HMM states.

Distributions are immutable values. One build context creates a normal per
reference position plus a single uniform and a single silent instance, and
every state of that read's lattice holds a reference to one of them.
"""

from dataclasses import dataclass, field
from typing import Dict

import numpy as np
from scipy import stats

from .config import TrainingConfig
from .exceptions import NegativeLogError
from .kmer_model import PoreModel
from .logspace import to_log


class EmissionDistribution:
    """Density in linear space; ``log_pdf`` maps it through ``to_log``."""

    is_silent = False

    def pdf(self, x):
        raise NotImplementedError

    def log_pdf(self, x):
        return to_log(self.pdf(x))


@dataclass(frozen=True)
class NormalDistribution(EmissionDistribution):
    mean: float
    std: float

    def pdf(self, x):
        # scipy returns NaN for std <= 0
        with np.errstate(divide='ignore', invalid='ignore'):
            density = stats.norm.pdf(x, loc=self.mean, scale=self.std)
        return float(density) if np.ndim(density) == 0 else density

    def log_pdf(self, x):
        if not self.std > 0:
            # A collapsed component has no density
            raise NegativeLogError()
        return to_log(self.pdf(x))


@dataclass(frozen=True)
class UniformDistribution(EmissionDistribution):
    """Flat density on the closed interval [lower, upper]."""
    lower: float
    upper: float

    def pdf(self, x):
        height = 1.0 / (self.upper - self.lower)
        if np.ndim(x) == 0:
            return height if self.lower <= x <= self.upper else 0.0
        x = np.asarray(x, dtype=np.float64)
        return np.where((x >= self.lower) & (x <= self.upper), height, 0.0)


@dataclass(frozen=True)
class SilentDistribution(EmissionDistribution):
    """Placeholder for states that consume no observation."""

    is_silent = True

    def pdf(self, x):
        raise TypeError("Silent states have no emission density")


@dataclass
class DistributionFactory:
    """Creates the emission distributions for one read's lattice."""

    pore_model: PoreModel
    config: TrainingConfig
    silent: SilentDistribution = field(init=False)
    insert: UniformDistribution = field(init=False)
    _match: Dict[str, NormalDistribution] = field(init=False, repr=False)

    def __post_init__(self):
        self.silent = SilentDistribution()
        self.insert = UniformDistribution(self.config.insert_lower, self.config.insert_upper)
        self._match = {}

    def create_match_distribution(self, kmer: str) -> NormalDistribution:
        """
        Normal distribution for a k-mer's match states.

        Repeated k-mers in a window share one instance.

        Raises:
            ModelLookupError: if the k-mer is not in the pore model
        """
        if kmer not in self._match:
            mean, std = self.pore_model.get_emission_params(kmer)
            self._match[kmer] = NormalDistribution(mean, std)
        return self._match[kmer]
