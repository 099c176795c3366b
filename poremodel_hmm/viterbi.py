"""
Viterbi decoding and forward scoring on a finalised HMM.

Row t of the dynamic-programming table holds, for every state, the best
log-probability of a path that has consumed exactly t events and ends in
that state. Emitting states read row t-1 and consume event t; silent states
read row t in topological order and consume nothing. All probability
arithmetic goes through ``logspace``, so zero is NaN throughout.

Silent states linked by edges between states of the same role (the deletion
run of a profile HMM) are solved with one cumulative scan per event instead
of one pass per link, so the cost per event does not grow with the number of
consecutive deletions the model allows.
"""

from dataclasses import dataclass
from typing import Dict, List, Sequence, Set, Tuple

import numpy as np

from .exceptions import ModelFinalisedError
from .hmm import HiddenMarkovModel, State
from .logspace import log_mul


@dataclass
class ViterbiResult:
    """Most probable state path for one event sequence."""
    log_probability: float  # NaN when no path has non-zero probability
    path: List[State]       # start ... end, silent states included

    @property
    def emitting_path(self) -> List[State]:
        return [s for s in self.path if s.is_emitting]


class _EdgeBlock:
    """
    Incoming edges of a group of destination states.

    Edges are grouped by destination; within a group they keep the order in
    which they were added to the model, which is the tie-breaking order.
    """

    def __init__(self, src: np.ndarray, dst: np.ndarray, logp: np.ndarray,
                 edge_ids: np.ndarray):
        order = np.argsort(dst, kind='stable')
        self.src = src[order]
        self.logp = logp[order]
        self.edge_ids = edge_ids[order]
        if self.src.size:
            self.destinations, self.starts, self.counts = np.unique(
                dst[order], return_index=True, return_counts=True
            )
        else:
            self.destinations = np.empty(0, dtype=np.int64)
            self.starts = self.counts = np.empty(0, dtype=np.int64)
        self._positions = np.arange(self.src.size)

    def _candidates(self, scores: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        candidates = log_mul(scores[self.src], self.logp)
        # NaN sorts below any finite score, as in log_greater_than
        keys = np.where(np.isnan(candidates), -np.inf, candidates)
        return candidates, keys

    def best(self, scores: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Best incoming score per destination, its source and its edge id."""
        if not self.src.size:
            empty = np.empty(0, dtype=np.int64)
            return np.empty(0), empty, empty
        candidates, keys = self._candidates(scores)
        peaks = np.maximum.reduceat(keys, self.starts)
        hits = keys == np.repeat(peaks, self.counts)
        first = np.minimum.reduceat(
            np.where(hits, self._positions, self.src.size), self.starts
        )
        return candidates[first], self.src[first], self.edge_ids[first]

    def total(self, scores: np.ndarray) -> np.ndarray:
        """Summed incoming probability per destination."""
        if not self.src.size:
            return np.empty(0)
        _, keys = self._candidates(scores)
        totals = np.logaddexp.reduceat(keys, self.starts)
        return np.where(np.isneginf(totals), np.nan, totals)


class _ChainRun:
    """
    Silent states n0 -> n1 -> ... joined by same-role edges within one layer.

    With C[k] the summed log-probability of the links up to n_k and o[k] the
    best score reaching n_k from outside the run, the run's scores are
    C[k] + max_{j<=k}(o[j] - C[j]): a running maximum (or running log-sum for
    the forward pass) over the whole run at once.
    """

    def __init__(self, nodes: List[int], logp: np.ndarray, edge_ids: List[int]):
        self.nodes = np.asarray(nodes, dtype=np.int64)
        self.edge_ids = np.asarray(edge_ids, dtype=np.int64)
        self.offsets = np.concatenate(([0.0], np.cumsum(logp)))

    def _keys(self, row: np.ndarray) -> np.ndarray:
        outside = row[self.nodes]
        return np.where(np.isnan(outside), -np.inf, outside) - self.offsets

    def best(self, row: np.ndarray, pointer_row: np.ndarray, winning_edge: np.ndarray) -> None:
        """Extend Viterbi scores along the run, in place."""
        keys = self._keys(row)
        peaks = np.maximum.accumulate(keys)
        previous, current = peaks[:-1], keys[1:]

        # On a tie the outside edge wins only if it was added before the link
        outside_edge = winning_edge[self.nodes[1:]]
        outside_first = (outside_edge >= 0) & (outside_edge < self.edge_ids)
        restart = (current > previous) | (outside_first & (current == previous))

        linked = np.flatnonzero(~restart) + 1
        values = peaks[linked] + self.offsets[linked]
        row[self.nodes[linked]] = np.where(np.isneginf(values), np.nan, values)
        pointer_row[self.nodes[linked]] = self.nodes[linked - 1]

    def total(self, row: np.ndarray) -> None:
        """Extend forward sums along the run, in place."""
        totals = np.logaddexp.accumulate(self._keys(row)) + self.offsets
        row[self.nodes] = np.where(np.isneginf(totals), np.nan, totals)


class _Lattice:
    """Index arrays for one finalised model, split into evaluation blocks."""

    def __init__(self, hmm: HiddenMarkovModel):
        hmm.require_finalised()
        self.hmm = hmm
        self.n = len(hmm.all_states)
        src, dst, logp = hmm.edge_arrays()
        edge_ids = np.arange(src.size)

        emitting = np.array([s.is_emitting for s in hmm.all_states])
        into_emitting = emitting[dst] if dst.size else np.zeros(0, dtype=bool)
        self.emitting_block = _EdgeBlock(
            src[into_emitting], dst[into_emitting], logp[into_emitting], edge_ids[into_emitting]
        )

        links = self._links(hmm, src, dst, logp)

        # Links cost no depth; any other silent -> silent edge costs one layer
        layer: Dict[int, int] = {}
        silent_preds: Dict[int, List[Tuple[int, int]]] = {i: [] for i in hmm.silent_order}
        for e, (s, d) in enumerate(zip(src.tolist(), dst.tolist())):
            if d in silent_preds and s in silent_preds:
                silent_preds[d].append((s, 0 if e in links else 1))
        for i in hmm.silent_order:
            layer[i] = max((layer[p] + w for p, w in silent_preds[i]), default=0)

        active = {e for e in links if layer[int(src[e])] == layer[int(dst[e])]}
        active_mask = np.zeros(src.size, dtype=bool)
        active_mask[list(active)] = True

        n_layers = 1 + max(layer.values(), default=-1)
        self.silent_layers: List[Tuple[_EdgeBlock, List[_ChainRun]]] = []
        for depth in range(n_layers):
            members = [i for i in hmm.silent_order if layer[i] == depth]
            mask = np.isin(dst, members) & ~active_mask
            block = _EdgeBlock(src[mask], dst[mask], logp[mask], edge_ids[mask])
            runs = self._runs(members, active, src, dst, logp)
            self.silent_layers.append((block, runs))

    @staticmethod
    def _links(hmm: HiddenMarkovModel, src: np.ndarray, dst: np.ndarray,
               logp: np.ndarray) -> Set[int]:
        """Edges joining silent states of the same role, at most one in and out per state."""
        silent = set(hmm.silent_order)
        states = hmm.all_states
        linked_out: Set[int] = set()
        linked_in: Set[int] = set()
        links = set()
        for e, (s, d) in enumerate(zip(src.tolist(), dst.tolist())):
            if (s in silent and d in silent and not np.isnan(logp[e])
                    and states[s].role is states[d].role
                    and s not in linked_out and d not in linked_in):
                linked_out.add(s)
                linked_in.add(d)
                links.add(e)
        return links

    @staticmethod
    def _runs(members: List[int], active: Set[int], src: np.ndarray, dst: np.ndarray,
              logp: np.ndarray) -> List[_ChainRun]:
        member_set = set(members)
        next_edge = {int(src[e]): e for e in active if int(dst[e]) in member_set}
        heads_excluded = {int(dst[e]) for e in next_edge.values()}

        runs = []
        for head in members:
            if head in heads_excluded or head not in next_edge:
                continue
            nodes, edges = [head], []
            while nodes[-1] in next_edge:
                e = next_edge[nodes[-1]]
                edges.append(e)
                nodes.append(int(dst[e]))
            runs.append(_ChainRun(nodes, logp[edges], edges))
        return runs

    def emission_matrix(self, events: np.ndarray) -> np.ndarray:
        """Log emission densities, shape (n_events, n_emitting destinations)."""
        states = self.hmm.all_states
        columns = {}
        matrix = np.empty((events.size, self.emitting_block.destinations.size))
        for k, idx in enumerate(self.emitting_block.destinations):
            dist = states[idx].distribution
            if dist not in columns:
                columns[dist] = dist.log_pdf(events) if events.size else np.empty(0)
            matrix[:, k] = columns[dist]
        return matrix


def _as_events(events: Sequence[float]) -> np.ndarray:
    return np.asarray(events, dtype=np.float64).ravel()


def viterbi(hmm: HiddenMarkovModel, events: Sequence[float]) -> ViterbiResult:
    """
    Most probable state path explaining ``events``.

    Ties between equally good predecessors go to the transition added first,
    so decoding is deterministic. If every path has probability zero a path
    is still returned, built from first-added transitions, and
    ``log_probability`` is NaN.

    Args:
        hmm: Finalised model
        events: Normalised event values, in order

    Returns:
        ViterbiResult with the full path from start to end
    """
    if not hmm.finalised:
        raise ModelFinalisedError(f"Model {hmm.name} must be finalised before decoding")
    lattice = _Lattice(hmm)
    x = _as_events(events)
    T = x.size
    emissions = lattice.emission_matrix(x)

    scores = np.full((T + 1, lattice.n), np.nan)
    pointers = np.full((T + 1, lattice.n), -1, dtype=np.int64)
    scores[0, hmm.start_index] = 0.0

    emit_block = lattice.emitting_block
    for t in range(T + 1):
        if t > 0 and emit_block.destinations.size:
            best, source, _ = emit_block.best(scores[t - 1])
            scores[t, emit_block.destinations] = log_mul(best, emissions[t - 1])
            pointers[t, emit_block.destinations] = source

        winning_edge = np.full(lattice.n, -1, dtype=np.int64)
        for block, runs in lattice.silent_layers:
            if block.destinations.size:
                best, source, edge = block.best(scores[t])
                scores[t, block.destinations] = best
                pointers[t, block.destinations] = source
                winning_edge[block.destinations] = edge
            for run in runs:
                run.best(scores[t], pointers[t], winning_edge)

    path = _backtrack(hmm, pointers, T)
    return ViterbiResult(log_probability=float(scores[T, hmm.end_index]), path=path)


def _backtrack(hmm: HiddenMarkovModel, pointers: np.ndarray, T: int) -> List[State]:
    states = hmm.all_states
    index, row = hmm.end_index, T
    reversed_path = [states[index]]
    while not (index == hmm.start_index and row == 0):
        previous = pointers[row, index]
        if previous < 0:
            # Only reachable in the all-zero case
            break
        if states[index].is_emitting:
            row -= 1
        index = int(previous)
        reversed_path.append(states[index])
    reversed_path.reverse()
    return reversed_path


def forward_log_probability(hmm: HiddenMarkovModel, events: Sequence[float]) -> float:
    """
    Log-probability of ``events`` summed over all paths (forward algorithm).

    Returns NaN if the events cannot be produced by the model.
    """
    if not hmm.finalised:
        raise ModelFinalisedError(f"Model {hmm.name} must be finalised before scoring")
    lattice = _Lattice(hmm)
    x = _as_events(events)
    T = x.size
    emissions = lattice.emission_matrix(x)

    previous = np.full(lattice.n, np.nan)
    for t in range(T + 1):
        current = np.full(lattice.n, np.nan)
        if t == 0:
            current[hmm.start_index] = 0.0
        elif lattice.emitting_block.destinations.size:
            incoming = lattice.emitting_block.total(previous)
            current[lattice.emitting_block.destinations] = log_mul(incoming, emissions[t - 1])
        for block, runs in lattice.silent_layers:
            if block.destinations.size:
                current[block.destinations] = block.total(current)
            for run in runs:
                run.total(current)
        previous = current

    return float(previous[hmm.end_index])
