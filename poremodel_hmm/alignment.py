"""
Event alignment and pooling by reference position.

A read's normalised events are aligned to its reference window with
Viterbi; every event on a match or insertion state is attributed to that
state's reference position. Events at positions inside the training bounds
are pooled across reads in an EventPileup.
"""

import threading
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import TrainingConfig
from .data_loader import TrainingRead
from .exceptions import LatticeError
from .hmm import EMITTING_ROLES, State
from .hmm_builder import ProfileHMMBuilder
from .kmer_model import PoreModel
from .normalisation import NormalisedEvents, normalise_events
from .viterbi import viterbi


class EventPileup:
    """
    Normalised events grouped by absolute reference position.

    Appends are guarded by a lock, so reads may contribute from several
    threads. Iteration is in position order.
    """

    def __init__(self):
        self._events: Dict[int, List[float]] = {}
        self._lock = threading.Lock()

    def add(self, position: int, value: float) -> None:
        with self._lock:
            self._events.setdefault(int(position), []).append(float(value))

    def extend(self, pairs: Iterable[Tuple[int, float]]) -> int:
        """Add (position, value) pairs in one locked step. Returns the count."""
        pairs = list(pairs)
        with self._lock:
            for position, value in pairs:
                self._events.setdefault(int(position), []).append(float(value))
        return len(pairs)

    def merge(self, other: 'EventPileup') -> None:
        for position, values in other.items():
            self.extend((position, v) for v in values)

    def positions(self) -> List[int]:
        return sorted(self._events)

    def items(self) -> Iterator[Tuple[int, np.ndarray]]:
        for position in self.positions():
            yield position, np.array(self._events[position], dtype=np.float64)

    def __getitem__(self, position: int) -> np.ndarray:
        return np.array(self._events[position], dtype=np.float64)

    def __contains__(self, position: int) -> bool:
        return position in self._events

    def __len__(self) -> int:
        return len(self._events)

    @property
    def n_events(self) -> int:
        return sum(len(v) for v in self._events.values())

    def to_dataframe(self) -> pd.DataFrame:
        """Long-format table with columns position, event."""
        rows = [
            {'position': position, 'event': value}
            for position in self.positions()
            for value in self._events[position]
        ]
        return pd.DataFrame(rows, columns=['position', 'event'])


@dataclass
class ReadAlignment:
    """Viterbi alignment of one read."""
    read_id: str
    events: NormalisedEvents
    path: List[State]
    log_probability: float

    @property
    def emitting_path(self) -> List[State]:
        return emitting_path(self.path)


def emitting_path(path: Sequence[State]) -> List[State]:
    """Keep only states that consumed an event (matches and insertions)."""
    return [s for s in path if s.role in EMITTING_ROLES]


def accumulate_alignment(path: Sequence[State], events: Sequence[float],
                         pileup: EventPileup, bounds: Tuple[int, int]) -> int:
    """
    Pool aligned events whose position lies in [bounds[0], bounds[1]).

    Args:
        path: Decoded state path (silent states allowed)
        events: Normalised events, one per emitting state of the path
        pileup: Pileup to append to
        bounds: Training region on the reference

    Returns:
        Number of events added

    Raises:
        LatticeError: if the emitting path and the events differ in length
    """
    emitting = emitting_path(path)
    if len(emitting) != len(events):
        raise LatticeError(
            f"Alignment covers {len(emitting)} states for {len(events)} events"
        )

    lower, upper = bounds
    return pileup.extend(
        (state.position, value)
        for state, value in zip(emitting, events)
        if lower <= state.position < upper
    )


def align_read(read: TrainingRead, reference: str, pore_model: PoreModel,
               config: TrainingConfig,
               events: Optional[NormalisedEvents] = None) -> ReadAlignment:
    """
    Build the read's profile HMM and decode its normalised events.

    Args:
        read: Training read
        reference: Full reference sequence
        pore_model: 5-mer model for the match emissions
        config: Training configuration
        events: Pre-computed normalisation (computed here if omitted)

    Raises:
        LatticeError: if the region of interest does not fit the reference
        ModelLookupError: if a 5-mer of the window is not in the pore model
    """
    start, end = read.roi_bounds
    if end > len(reference):
        raise LatticeError(
            f"{read.read_id}: region of interest ({start}, {end}) runs past "
            f"the reference (length {len(reference)})"
        )
    if events is None:
        events = normalise_events(read, pore_model, config)

    builder = ProfileHMMBuilder(pore_model, config)
    hmm = builder.build_model(read.reference_window(reference), offset=start)
    result = viterbi(hmm, events.events)
    return ReadAlignment(
        read_id=read.read_id,
        events=events,
        path=result.path,
        log_probability=result.log_probability,
    )
