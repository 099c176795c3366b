"""
Hidden Markov model with silent states.

A small graph container: states are added with their emission distribution,
transitions are added as (source, destination, probability) edges, and
``finalise()`` locks the topology and prepares the index arrays the decoder
works on. Silent states consume no observation, so the silent sub-graph must
be acyclic; finalise() orders it topologically.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

import numpy as np

from .distributions import EmissionDistribution, SilentDistribution
from .exceptions import ModelFinalisedError
from .logspace import to_log


class StateRole(Enum):
    START = 'start'
    END = 'end'
    SILENT_START = 'SS'
    DELETION = 'D'
    INSERTION = 'I'
    MATCH_1 = 'M1'
    MATCH_2 = 'M2'
    SILENT_END = 'SE'


EMITTING_ROLES = frozenset({StateRole.INSERTION, StateRole.MATCH_1, StateRole.MATCH_2})


@dataclass(frozen=True)
class State:
    """
    One node of the lattice.

    Identity is structured: ``position`` is the absolute reference index the
    state belongs to and ``role`` says what it does there. ``name`` is only a
    human-readable label.
    """
    name: str
    distribution: EmissionDistribution
    role: StateRole
    position: Optional[int] = None
    kmer: str = ''

    @property
    def is_silent(self) -> bool:
        return self.distribution.is_silent

    @property
    def is_emitting(self) -> bool:
        return self.role in EMITTING_ROLES and not self.distribution.is_silent


@dataclass
class Transition:
    source: int
    destination: int
    probability: float


class HiddenMarkovModel:
    """HMM with synthetic start and end states."""

    def __init__(self, name: str = 'hmm'):
        self.name = name
        silent = SilentDistribution()
        self.start = State(f'{name}-start', silent, StateRole.START)
        self.end = State(f'{name}-end', silent, StateRole.END)

        # Index 0 is start; end is appended at finalise()
        self._states: List[State] = [self.start]
        self._index: Dict[State, int] = {self.start: 0}
        self._names = {self.start.name}
        self.transitions: List[Transition] = []
        self.finalised = False

        # Set during finalise()
        self.all_states: Tuple[State, ...] = ()
        self.silent_order: List[int] = []
        self.start_index = 0
        self.end_index = -1

    @property
    def states(self) -> List[State]:
        """Lattice states, excluding the synthetic start and end."""
        return [s for s in self._states if s is not self.start and s is not self.end]

    @property
    def n_states(self) -> int:
        return len(self.states)

    def _check_open(self) -> None:
        if self.finalised:
            raise ModelFinalisedError(f"Model {self.name} is finalised")

    def add_state(self, state: State) -> int:
        """
        Add a state to the model.

        Returns:
            Index of the state in ``all_states``
        """
        self._check_open()
        if state.name in self._names or state.name == self.end.name:
            raise ValueError(f"Duplicate state name: {state.name}")
        if state.role in (StateRole.START, StateRole.END):
            raise ValueError("Start and end states are created by the model")
        self._names.add(state.name)
        self._index[state] = len(self._states)
        self._states.append(state)
        return self._index[state]

    def add_transition(self, source: State, destination: State, probability: float) -> None:
        """
        Add a directed edge. Duplicate edges are kept as separate transitions.
        """
        self._check_open()
        if destination is self.start:
            raise ValueError("No transition may enter the start state")
        if source is self.end:
            raise ValueError("No transition may leave the end state")
        if not 0.0 <= probability <= 1.0:
            raise ValueError(f"Transition probability out of range: {probability}")
        self.transitions.append(Transition(
            source=self._lookup(source),
            destination=self._lookup(destination),
            probability=float(probability),
        ))

    def _lookup(self, state: State) -> int:
        if state is self.end:
            # Resolved to the real index at finalise()
            return -1
        try:
            return self._index[state]
        except KeyError:
            raise ValueError(f"State {state.name} has not been added to {self.name}") from None

    def finalise(self) -> None:
        """
        Lock the topology and order the silent states for decoding.

        Raises:
            ValueError: if the silent states contain a cycle
        """
        self._check_open()
        self.end_index = len(self._states)
        self._states.append(self.end)
        self._index[self.end] = self.end_index
        for t in self.transitions:
            if t.destination == -1:
                t.destination = self.end_index

        self.all_states = tuple(self._states)
        self.silent_order = self._topological_silent_order()
        self.finalised = True

    def _topological_silent_order(self) -> List[int]:
        """Kahn's algorithm over silent -> silent edges (start excluded)."""
        silent = [
            i for i, s in enumerate(self._states)
            if s.is_silent and i != self.start_index
        ]
        silent_set = set(silent)
        indegree = {i: 0 for i in silent}
        children: Dict[int, List[int]] = {i: [] for i in silent}
        for t in self.transitions:
            if t.source in silent_set and t.destination in silent_set:
                indegree[t.destination] += 1
                children[t.source].append(t.destination)

        # Ties resolved by insertion order
        ready = [i for i in silent if indegree[i] == 0]
        order = []
        while ready:
            i = ready.pop(0)
            order.append(i)
            for child in children[i]:
                indegree[child] -= 1
                if indegree[child] == 0:
                    ready.append(child)

        if len(order) != len(silent):
            raise ValueError(f"Model {self.name} has a cycle of silent states")
        return order

    def require_finalised(self) -> None:
        if not self.finalised:
            raise ModelFinalisedError(f"Model {self.name} must be finalised before decoding")

    def index_of(self, state: State) -> int:
        return self._index[state]

    def edge_arrays(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """(sources, destinations, log probabilities) in insertion order."""
        self.require_finalised()
        src = np.array([t.source for t in self.transitions], dtype=np.int64)
        dst = np.array([t.destination for t in self.transitions], dtype=np.int64)
        logp = to_log(np.array([t.probability for t in self.transitions], dtype=np.float64))
        return src, dst, logp

    def summary(self) -> str:
        n_silent = sum(1 for s in self.states if s.is_silent)
        return (f"{self.name}: {self.n_states} states ({n_silent} silent), "
                f"{len(self.transitions)} transitions")
