"""
Pore Model Training for Base Analogue Detection

Fits per-position two-component Gaussian mixtures to nanopore signal that a
per-read profile HMM has aligned to a reference.

Usage:
    from poremodel_hmm import PoreModel, PoreModelTrainer, TrainingDataFile
    from poremodel_hmm import default_config, write_model_table

    config = default_config(bounds=(150, 650))
    pore_model = PoreModel.from_file("template_r9.4_5mer.model")

    with TrainingDataFile("data.foh") as data:
        trainer = PoreModelTrainer(pore_model, data.reference, config)
        fits = trainer.train(data.iter_reads(), total=data.read_count)

    write_model_table(fits, "trained.model")
"""

from .config import TrainingConfig, TransitionConfig, default_config
from .exceptions import (
    PoreModelError,
    ConfigurationError,
    ModelFinalisedError,
    RecoverableError,
    NumericalError,
    NegativeLogError,
    DivideByZeroError,
    ModelLookupError,
    LatticeError,
)
from .logspace import to_log, from_log, log_add, log_mul, log_div, log_greater_than, log_sum
from .distributions import (
    EmissionDistribution,
    NormalDistribution,
    UniformDistribution,
    SilentDistribution,
    DistributionFactory,
)
from .kmer_model import PoreModel
from .data_loader import TrainingDataFile, TrainingRead, parse_read
from .normalisation import NormalisedEvents, normalise_events, passes_quality_filter, segment_signal
from .hmm import HiddenMarkovModel, State, StateRole
from .hmm_builder import ProfileHMMBuilder
from .viterbi import ViterbiResult, viterbi, forward_log_probability
from .alignment import EventPileup, ReadAlignment, accumulate_alignment, align_read, emitting_path
from .mixture import MixtureFit, gaussian_mixture_em
from .output import FittedPosition, TABLE_COLUMNS, model_table, write_model_table
from .training import PoreModelTrainer, ReadOutcome, TrainingSummary, train_from_file

__version__ = "0.1.0"

__all__ = [
    # Config
    "TrainingConfig",
    "TransitionConfig",
    "default_config",
    # Errors
    "PoreModelError",
    "ConfigurationError",
    "ModelFinalisedError",
    "RecoverableError",
    "NumericalError",
    "NegativeLogError",
    "DivideByZeroError",
    "ModelLookupError",
    "LatticeError",
    # Log-space arithmetic
    "to_log",
    "from_log",
    "log_add",
    "log_mul",
    "log_div",
    "log_greater_than",
    "log_sum",
    # Distributions
    "EmissionDistribution",
    "NormalDistribution",
    "UniformDistribution",
    "SilentDistribution",
    "DistributionFactory",
    # Data
    "PoreModel",
    "TrainingDataFile",
    "TrainingRead",
    "parse_read",
    "NormalisedEvents",
    "normalise_events",
    "passes_quality_filter",
    "segment_signal",
    # Model building and decoding
    "HiddenMarkovModel",
    "State",
    "StateRole",
    "ProfileHMMBuilder",
    "ViterbiResult",
    "viterbi",
    "forward_log_probability",
    # Alignment
    "EventPileup",
    "ReadAlignment",
    "accumulate_alignment",
    "align_read",
    "emitting_path",
    # Fitting and output
    "MixtureFit",
    "gaussian_mixture_em",
    "FittedPosition",
    "TABLE_COLUMNS",
    "model_table",
    "write_model_table",
    # Training
    "PoreModelTrainer",
    "ReadOutcome",
    "TrainingSummary",
    "train_from_file",
]
