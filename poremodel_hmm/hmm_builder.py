"""
Profile HMM builder.

Constructs a fresh HMM for one read's reference window. Each 5-mer of the
window gets a module of six states:

    SS  silent start
    D   deletion (silent)
    I   insertion (uniform emission)
    M1  match, short dwell (normal emission from the pore model)
    M2  match, long dwell (same normal as M1)
    SE  silent end

Within a module:  SS->M1, SS->M2, D->I, I->I, I->SS, M1->M1, M1->SE,
                  M2->M2, M2->SE, SE->I
Module i -> i+1:  D->D, D->SS, I->SS, SE->SS, SE->D

The two match states let the model absorb a run of samples from one 5-mer
as a mixture of a short and a long geometric dwell.
"""

from typing import List

from .config import TrainingConfig
from .distributions import DistributionFactory
from .exceptions import LatticeError
from .hmm import HiddenMarkovModel, State, StateRole
from .kmer_model import PoreModel

MODULE_ROLES = (
    StateRole.SILENT_START,
    StateRole.DELETION,
    StateRole.INSERTION,
    StateRole.MATCH_1,
    StateRole.MATCH_2,
    StateRole.SILENT_END,
)


class ProfileModule:
    """The six states of one reference position."""

    def __init__(self, states: List[State]):
        self.ss, self.d, self.i, self.m1, self.m2, self.se = states

    @property
    def states(self) -> List[State]:
        return [self.ss, self.d, self.i, self.m1, self.m2, self.se]


class ProfileHMMBuilder:
    """Builds the per-read profile HMM."""

    def __init__(self, pore_model: PoreModel, config: TrainingConfig):
        """
        Initialize builder.

        Args:
            pore_model: Loaded 5-mer model
            config: Training configuration (transition probabilities,
                insertion emission range)
        """
        self.pore_model = pore_model
        self.config = config
        self.k = config.kmer_length

    def build_model(self, window: str, offset: int = 0) -> HiddenMarkovModel:
        """
        Build and finalise the profile HMM for a reference window.

        Args:
            window: Reference substring the read maps to
            offset: Absolute reference position of window[0]

        Returns:
            Finalised HiddenMarkovModel with one module per 5-mer start in
            window[:-1], i.e. 6 * (len(window) - 5) states

        Raises:
            LatticeError: if the window is too short for a single module
            ModelLookupError: if a 5-mer of the window is not in the pore model
        """
        n_modules = len(window) - self.k
        if n_modules < 1:
            raise LatticeError(
                f"Reference window of length {len(window)} is too short; "
                f"need at least {self.k + 1} bases"
            )

        # One factory per read: distributions never outlive this lattice
        factory = DistributionFactory(self.pore_model, self.config)
        hmm = HiddenMarkovModel(name=f'profile-{offset}-{offset + len(window)}')
        modules = [
            self._add_module(hmm, factory, window[i:i + self.k], offset + i)
            for i in range(n_modules)
        ]

        self._add_external_transitions(hmm, modules)
        self._add_boundary_transitions(hmm, modules)
        hmm.finalise()
        return hmm

    def _add_module(self, hmm: HiddenMarkovModel, factory: DistributionFactory,
                    kmer: str, position: int) -> ProfileModule:
        match = factory.create_match_distribution(kmer)
        distributions = {
            StateRole.SILENT_START: factory.silent,
            StateRole.DELETION: factory.silent,
            StateRole.INSERTION: factory.insert,
            StateRole.MATCH_1: match,
            StateRole.MATCH_2: match,
            StateRole.SILENT_END: factory.silent,
        }
        states = [
            State(
                name=f'{position}_{role.value}',
                distribution=distributions[role],
                role=role,
                position=position,
                kmer=kmer,
            )
            for role in MODULE_ROLES
        ]
        for state in states:
            hmm.add_state(state)

        m = ProfileModule(states)
        tp = self.config.transitions
        hmm.add_transition(m.ss, m.m1, tp.ss_to_m1)
        hmm.add_transition(m.ss, m.m2, tp.ss_to_m2)
        hmm.add_transition(m.d, m.i, tp.d_to_i)
        hmm.add_transition(m.i, m.i, tp.i_to_i)
        hmm.add_transition(m.i, m.ss, tp.i_to_ss)
        hmm.add_transition(m.m1, m.m1, tp.m1_to_m1)
        hmm.add_transition(m.m1, m.se, tp.m1_to_se)
        hmm.add_transition(m.m2, m.m2, tp.m2_to_m2)
        hmm.add_transition(m.m2, m.se, tp.m2_to_se)
        hmm.add_transition(m.se, m.i, tp.se_to_i)
        return m

    def _add_external_transitions(self, hmm: HiddenMarkovModel,
                                  modules: List[ProfileModule]) -> None:
        tp = self.config.transitions
        for current, following in zip(modules[:-1], modules[1:]):
            hmm.add_transition(current.d, following.d, tp.ext_d_to_d)
            hmm.add_transition(current.d, following.ss, tp.ext_d_to_ss)
            hmm.add_transition(current.i, following.ss, tp.ext_i_to_ss)
            hmm.add_transition(current.se, following.ss, tp.ext_se_to_ss)
            hmm.add_transition(current.se, following.d, tp.ext_se_to_d)

    def _add_boundary_transitions(self, hmm: HiddenMarkovModel,
                                  modules: List[ProfileModule]) -> None:
        tp = self.config.transitions
        first, last = modules[0], modules[-1]
        hmm.add_transition(hmm.start, first.ss, 0.5)
        hmm.add_transition(hmm.start, first.d, 0.5)

        # The end state collects whatever mass would have left for module n+1
        hmm.add_transition(last.d, hmm.end, tp.ext_d_to_d + tp.ext_d_to_ss)
        hmm.add_transition(last.i, hmm.end, tp.ext_i_to_ss)
        hmm.add_transition(last.se, hmm.end, tp.ext_se_to_ss + tp.ext_se_to_d)
