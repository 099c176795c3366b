"""
Pore model training.

Aligns every training read to its reference window, pools the aligned events
by reference position inside the training bounds, then fits a two-component
Gaussian mixture at each position. Reads are processed one at a time; each
read's HMM is built, decoded and discarded before the next one.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional

import numpy as np
from tqdm import tqdm

from .alignment import EventPileup, accumulate_alignment, align_read
from .config import TrainingConfig
from .data_loader import TrainingDataFile, TrainingRead
from .exceptions import ConfigurationError, RecoverableError
from .kmer_model import PoreModel
from .mixture import gaussian_mixture_em
from .normalisation import normalise_events, passes_quality_filter
from .output import FittedPosition, write_model_table


class ReadOutcome(Enum):
    ACCEPTED = 'accepted'
    LOW_QUALITY = 'low_quality'
    FAILED = 'failed'


@dataclass
class TrainingSummary:
    n_reads: int = 0
    n_accepted: int = 0
    n_low_quality: int = 0
    n_failed: int = 0
    n_events_pooled: int = 0
    n_positions_fitted: int = 0
    n_positions_abandoned: int = 0

    def record(self, outcome: ReadOutcome) -> None:
        self.n_reads += 1
        if outcome is ReadOutcome.ACCEPTED:
            self.n_accepted += 1
        elif outcome is ReadOutcome.LOW_QUALITY:
            self.n_low_quality += 1
        else:
            self.n_failed += 1


class PoreModelTrainer:
    """Aligns training reads and fits per-position mixtures."""

    def __init__(self, pore_model: PoreModel, reference: str, config: TrainingConfig):
        """
        Initialize trainer.

        Args:
            pore_model: 5-mer model for emissions and mixture seeds
            reference: Full reference sequence the reads map to
            config: Training configuration (bounds, thresholds)
        """
        self.pore_model = pore_model
        self.reference = reference.upper()
        self.config = config
        self.summary = TrainingSummary()

    def process_read(self, read: TrainingRead, pileup: EventPileup) -> ReadOutcome:
        """
        Normalise, filter, align and pool one read.

        Low-quality reads are skipped silently. Reads that cannot be aligned
        (window too short, unknown 5-mer, degenerate alignment) are reported
        and skipped.
        """
        events = normalise_events(read, self.pore_model, self.config)
        if not passes_quality_filter(events.quality_score, self.config.quality_threshold):
            return ReadOutcome.LOW_QUALITY

        try:
            alignment = align_read(read, self.reference, self.pore_model, self.config,
                                   events=events)
            added = accumulate_alignment(alignment.path, events.events, pileup,
                                         self.config.bounds)
        except RecoverableError as e:
            tqdm.write(f"Skipping {read.read_id}: {e}")
            return ReadOutcome.FAILED

        self.summary.n_events_pooled += added
        return ReadOutcome.ACCEPTED

    def align_reads(
        self,
        reads: Iterable[TrainingRead],
        total: Optional[int] = None,
        pileup: Optional[EventPileup] = None,
        show_progress: bool = True,
    ) -> EventPileup:
        """
        Align reads in order and pool their events.

        Args:
            reads: Training reads
            total: Expected number of reads, for progress reporting
            pileup: Existing pileup to extend (a new one if omitted)
            show_progress: Show a per-read progress bar

        Returns:
            The event pileup
        """
        if pileup is None:
            pileup = EventPileup()

        for read in tqdm(reads, total=total, desc="Aligning", disable=not show_progress):
            self.summary.record(self.process_read(read, pileup))

        print(f"Aligned {self.summary.n_accepted}/{self.summary.n_reads} reads "
              f"({self.summary.n_low_quality} low quality, {self.summary.n_failed} failed); "
              f"{pileup.n_events} events at {len(pileup)} positions")
        return pileup

    def fit_position(self, position: int, values: np.ndarray) -> Optional[FittedPosition]:
        """
        Fit the mixture for one reference position.

        Component 1 is seeded from the pore model, component 2 from the same
        distribution shifted by ``second_component_offset``.

        Returns:
            FittedPosition, or None if the position was abandoned
        """
        kmer = self.reference[position:position + self.config.kmer_length]
        try:
            mean, std = self.pore_model.get_emission_params(kmer)
            fit = gaussian_mixture_em(
                mean, std,
                mean + self.config.second_component_offset, std,
                values,
                threshold=self.config.convergence_threshold,
                max_iterations=self.config.max_em_iterations,
            )
        except RecoverableError as e:
            print(f"{e}\nAborted training on: {kmer} (position {position})")
            return None

        if not fit.converged:
            print(f"Warning: mixture at position {position} ({kmer}) did not converge "
                  f"in {fit.iterations} iterations")

        return FittedPosition(
            position=position,
            kmer=kmer,
            model_mean=mean,
            model_std=std,
            fit=fit,
        )

    def fit_pileup(self, pileup: EventPileup) -> List[FittedPosition]:
        """Fit every position in the pileup, in position order."""
        fits = []
        for position, values in pileup.items():
            fitted = self.fit_position(position, values)
            if fitted is None:
                self.summary.n_positions_abandoned += 1
                continue
            fits.append(fitted)
            self.summary.n_positions_fitted += 1

        print(f"Fitted {self.summary.n_positions_fitted} positions "
              f"({self.summary.n_positions_abandoned} abandoned)")
        return fits

    def train(self, reads: Iterable[TrainingRead],
              total: Optional[int] = None) -> List[FittedPosition]:
        """Align all reads, then fit all positions."""
        pileup = self.align_reads(reads, total=total)
        return self.fit_pileup(pileup)


def _check_writable(path: str) -> None:
    try:
        with open(path, 'w'):
            pass
    except OSError as e:
        raise ConfigurationError(f"Cannot open output file {path}: {e}") from e


def train_from_file(config: TrainingConfig) -> List[FittedPosition]:
    """
    Full training pipeline: load inputs, train, write the table.

    Args:
        config: Configuration with training data, pore model and output paths

    Returns:
        Fitted positions, as written to ``config.output_path``
    """
    pore_model = PoreModel.from_file(config.pore_model_path, config.kmer_length)
    _check_writable(config.output_path)

    with TrainingDataFile(config.training_data_path) as data:
        lower, upper = config.bounds
        if upper > len(data.reference):
            raise ConfigurationError(
                f"Training bounds ({lower}, {upper}) exceed the reference length "
                f"{len(data.reference)}"
            )
        print(f"Training on {data.read_count} reads, reference length {len(data.reference)}, "
              f"bounds [{lower}, {upper})")
        trainer = PoreModelTrainer(pore_model, data.reference, config)
        fits = trainer.train(data.iter_reads(), total=data.read_count)

    path = write_model_table(fits, config.output_path)
    print(f"Saved pore model to {Path(path)}")
    return fits
