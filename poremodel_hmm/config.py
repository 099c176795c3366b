"""
Configuration for pore model training.
"""

import json
import math
from dataclasses import dataclass, field, asdict
from typing import Optional, Tuple

from .exceptions import ConfigurationError


@dataclass(frozen=True)
class TransitionConfig:
    """Hand-set transition probabilities of one profile HMM module."""

    # Internal transitions (within one reference position)
    ss_to_m1: float = 0.50
    ss_to_m2: float = 0.50
    d_to_i: float = 0.001
    i_to_i: float = 0.001       # Insert self-loop
    i_to_ss: float = 0.4995     # Insert -> re-enter the same module
    m1_to_m1: float = 0.43      # Short dwell
    m1_to_se: float = 0.57
    m2_to_m2: float = 0.80      # Long dwell
    m2_to_se: float = 0.20
    se_to_i: float = 0.001

    # External transitions (position i -> i+1)
    ext_d_to_d: float = 0.30
    ext_d_to_ss: float = 0.699
    ext_i_to_ss: float = 0.4995
    ext_se_to_ss: float = 0.99
    ext_se_to_d: float = 0.009

    def __post_init__(self):
        """Validate that every state's outgoing mass sums to 1."""
        for name, value in asdict(self).items():
            if not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"Transition {name}={value} is not a probability")

        outgoing = {
            'SS': self.ss_to_m1 + self.ss_to_m2,
            'D': self.d_to_i + self.ext_d_to_d + self.ext_d_to_ss,
            'I': self.i_to_i + self.i_to_ss + self.ext_i_to_ss,
            'M1': self.m1_to_m1 + self.m1_to_se,
            'M2': self.m2_to_m2 + self.m2_to_se,
            'SE': self.se_to_i + self.ext_se_to_ss + self.ext_se_to_d,
        }
        for state, total in outgoing.items():
            if not math.isclose(total, 1.0, abs_tol=1e-9):
                raise ConfigurationError(
                    f"Transitions out of {state} sum to {total}, expected 1.0"
                )


@dataclass
class TrainingConfig:
    """Configuration for alignment and mixture fitting."""

    # Paths
    training_data_path: str = ""
    pore_model_path: str = ""
    output_path: str = ""

    # Training bounds on the reference: [lower, upper)
    bounds: Tuple[int, int] = (0, 0)
    threads: int = 1

    kmer_length: int = 5
    transitions: TransitionConfig = field(default_factory=TransitionConfig)

    # Insertion state emission: uniform over this range (pA)
    insert_lower: float = 50.0
    insert_upper: float = 150.0

    # Reads with |quality score| above this are skipped
    quality_threshold: float = 1.0

    # Collapse raw samples into segment means before alignment
    segment_events: bool = False
    segment_threshold: float = 9.0
    segment_min_duration: int = 2

    # Mixture fitting
    second_component_offset: float = 1.0
    convergence_threshold: float = 1e-4
    max_em_iterations: int = 10000

    def __post_init__(self):
        """Validate configuration."""
        self.bounds = tuple(int(b) for b in self.bounds)
        if len(self.bounds) != 2:
            raise ConfigurationError("bounds must be a (lower, upper) pair")
        if self.bounds[0] < 0 or self.bounds[1] < self.bounds[0]:
            raise ConfigurationError(f"Invalid training bounds: {self.bounds}")
        if self.threads < 1:
            raise ConfigurationError(f"threads must be >= 1, got {self.threads}")
        if self.kmer_length != 5:
            raise ConfigurationError("Only 5-mer pore models are supported")
        if self.insert_upper <= self.insert_lower:
            raise ConfigurationError("insert_upper must exceed insert_lower")
        if self.quality_threshold < 0:
            raise ConfigurationError("quality_threshold must be non-negative")
        if self.convergence_threshold <= 0:
            raise ConfigurationError("convergence_threshold must be positive")
        if self.max_em_iterations < 1:
            raise ConfigurationError("max_em_iterations must be >= 1")
        if isinstance(self.transitions, dict):
            self.transitions = TransitionConfig(**self.transitions)

    @classmethod
    def from_json(cls, path: str, **overrides) -> 'TrainingConfig':
        """
        Load configuration from a JSON file.

        Keys match the dataclass fields; ``transitions`` may be a nested
        object. Keyword overrides (e.g. from the command line) win.

        Args:
            path: Path to JSON config file
            **overrides: Field values that replace those in the file

        Returns:
            Validated TrainingConfig
        """
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read config file {path}: {e}") from e

        data.update({k: v for k, v in overrides.items() if v is not None})
        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigurationError(f"Invalid config file {path}: {e}") from e

    @property
    def bound_lower(self) -> int:
        return self.bounds[0]

    @property
    def bound_upper(self) -> int:
        return self.bounds[1]


def default_config(bounds: Optional[Tuple[int, int]] = None) -> TrainingConfig:
    """Create config with default model parameters."""
    if bounds is None:
        return TrainingConfig()
    return TrainingConfig(bounds=bounds)
