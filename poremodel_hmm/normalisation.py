"""
Shift/scale normalisation of raw signal onto the pore model's scale.

The expected levels of a read are the pore-model means of the 5-mers in its
basecalls. Raw samples are matched to them by median and median absolute
deviation (MAD):

    scale = MAD(raw) / MAD(levels)
    shift = median(raw) - scale * median(levels)
    event = (raw - shift) / scale

The quality score is log2(scale): 0 when the read's spread matches the
model, +1 when it is twice as wide, -1 when half. Reads whose score cannot be
computed get +inf.
"""

import math
from dataclasses import dataclass

import numpy as np
from scipy.ndimage import gaussian_filter1d

from .config import TrainingConfig
from .data_loader import TrainingRead
from .kmer_model import PoreModel


@dataclass(frozen=True, eq=False)
class NormalisedEvents:
    events: np.ndarray
    shift: float
    scale: float
    quality_score: float

    def __len__(self) -> int:
        return len(self.events)


def segment_signal(signal: np.ndarray, threshold: float = 9.0,
                   min_duration: int = 2) -> np.ndarray:
    """
    Chop raw current into segments and return their means (pA).

    Boundaries are placed where the smoothed signal's first difference
    exceeds ``threshold``; segments not longer than ``min_duration``
    samples are dropped.
    """
    signal = np.asarray(signal, dtype=np.float64)
    if signal.size < 2:
        return signal.copy()

    smooth = gaussian_filter1d(signal, sigma=1.0)
    grad = np.abs(np.diff(smooth))
    jumps = np.where(grad > threshold)[0] + 1
    boundaries = np.concatenate(([0], jumps, [len(signal)]))

    means = [
        signal[start:end].mean()
        for start, end in zip(boundaries[:-1], boundaries[1:])
        if end - start > min_duration
    ]
    return np.array(means, dtype=np.float64)


def _mad(values: np.ndarray) -> float:
    return float(np.median(np.abs(values - np.median(values))))


def normalise_events(read: TrainingRead, pore_model: PoreModel,
                     config: TrainingConfig) -> NormalisedEvents:
    """
    Normalise a read's signal for shift and scale.

    Args:
        read: Parsed training read
        pore_model: Model supplying expected levels for the basecalls
        config: Segmentation settings

    Returns:
        NormalisedEvents; quality_score is inf when normalisation is impossible
    """
    raw = read.raw
    if config.segment_events:
        raw = segment_signal(raw, config.segment_threshold, config.segment_min_duration)

    levels = pore_model.expected_levels(read.basecalls)
    if levels.size < 2 or raw.size < 2:
        return NormalisedEvents(raw.copy(), 0.0, 1.0, math.inf)

    level_mad = _mad(levels)
    raw_mad = _mad(raw)
    if level_mad == 0.0 or raw_mad == 0.0:
        return NormalisedEvents(raw.copy(), 0.0, 1.0, math.inf)

    scale = raw_mad / level_mad
    shift = float(np.median(raw)) - scale * float(np.median(levels))
    events = (raw - shift) / scale
    return NormalisedEvents(events, shift, scale, math.log2(scale))


def passes_quality_filter(quality_score: float, threshold: float) -> bool:
    """Reads exactly at the threshold are kept."""
    return abs(quality_score) <= threshold
