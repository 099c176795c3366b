"""
Shared fixtures: a small synthetic pore model and reads simulated from it.

The reference repeats an 8-mer, so it contains exactly eight distinct 5-mers,
each with its own integer level.
"""

import sys
from pathlib import Path

import numpy as np
import pytest

PROJECT_ROOT = Path(__file__).parent.parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from poremodel_hmm.config import TrainingConfig  # noqa: E402
from poremodel_hmm.data_loader import TrainingRead  # noqa: E402
from poremodel_hmm.kmer_model import PoreModel  # noqa: E402

REFERENCE = "AATTGGCCAATTGGCCAATT"

LEVELS = {
    'AATTG': (60.0, 2.0),
    'ATTGG': (75.0, 2.0),
    'TTGGC': (90.0, 2.0),
    'TGGCC': (105.0, 2.0),
    'GGCCA': (120.0, 2.0),
    'GCCAA': (135.0, 2.0),
    'CCAAT': (80.0, 2.0),
    'CAATT': (95.0, 2.0),
}


def simulate_signal(window: str, samples_per_base: int = 30, seed: int = 0) -> np.ndarray:
    """
    Raw current for a window: two tight clusters per modelled 5-mer.

    Each position dwells for ``samples_per_base`` samples, half 1.5 pA below
    the model level and half 1.5 pA above.
    """
    rng = np.random.default_rng(seed)
    half = samples_per_base // 2
    chunks = []
    for i in range(len(window) - 5):
        mean = LEVELS[window[i:i + 5]][0]
        chunk = np.concatenate([
            rng.normal(mean - 1.5, 0.4, half),
            rng.normal(mean + 1.5, 0.4, samples_per_base - half),
        ])
        rng.shuffle(chunk)
        chunks.append(chunk)
    return np.concatenate(chunks)


def write_pore_model(path: Path, levels=None) -> Path:
    levels = LEVELS if levels is None else levels
    lines = ["kmer\tlevel_mean\tlevel_stdv\tsd_mean\tsd_stdv"]
    lines += [f"{k}\t{m}\t{s}\t1.0\t0.5" for k, (m, s) in levels.items()]
    path.write_text("\n".join(lines) + "\n")
    return path


def write_training_data(path: Path, reads) -> Path:
    """``reads`` is a list of (basecalls, (start, end), raw) tuples."""
    lines = [REFERENCE, str(len(reads))]
    for basecalls, (start, end), raw in reads:
        lines.append(basecalls)
        lines.append(f"{start} {end}")
        lines.append(" ".join(f"{v:.4f}" for v in raw))
    path.write_text("\n".join(lines) + "\n")
    return path


@pytest.fixture
def reference():
    return REFERENCE


@pytest.fixture
def pore_model():
    return PoreModel(LEVELS)


@pytest.fixture
def config():
    return TrainingConfig(bounds=(0, len(REFERENCE)))


@pytest.fixture
def good_read():
    return TrainingRead(
        read_id='read_0',
        basecalls=REFERENCE,
        roi_bounds=(0, len(REFERENCE)),
        raw=simulate_signal(REFERENCE),
    )
