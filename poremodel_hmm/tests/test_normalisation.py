"""
Tests for signal normalisation, the quality filter and segmentation.
"""

import math

import numpy as np
import pytest

from poremodel_hmm.config import TrainingConfig
from poremodel_hmm.data_loader import TrainingRead
from poremodel_hmm.normalisation import normalise_events, passes_quality_filter, segment_signal


def read_with_raw(reference, raw):
    return TrainingRead('r', reference, (0, len(reference)), np.asarray(raw, dtype=np.float64))


class TestNormaliseEvents:

    def test_identity_when_raw_matches_levels(self, reference, pore_model, config):
        """Raw signal equal to the model levels is left unchanged."""
        levels = pore_model.expected_levels(reference)
        result = normalise_events(read_with_raw(reference, levels), pore_model, config)
        assert result.scale == 1.0
        assert result.shift == 0.0
        assert result.quality_score == 0.0
        np.testing.assert_array_equal(result.events, levels)

    def test_undoes_shift_and_scale(self, reference, pore_model, config):
        """A shifted and scaled read is mapped back onto the model."""
        levels = pore_model.expected_levels(reference)
        result = normalise_events(read_with_raw(reference, 2.0 * levels + 10.0), pore_model, config)
        assert result.scale == pytest.approx(2.0)
        assert result.shift == pytest.approx(10.0)
        np.testing.assert_allclose(result.events, levels)

    def test_threshold_is_inclusive(self, reference, pore_model, config):
        """A quality score equal to the threshold passes."""
        levels = pore_model.expected_levels(reference)
        result = normalise_events(read_with_raw(reference, 2.0 * levels + 10.0), pore_model, config)
        assert result.quality_score == 1.0
        assert passes_quality_filter(result.quality_score, config.quality_threshold)

    def test_wide_read_is_rejected(self, reference, pore_model, config):
        """A read twice as spread as the model is rejected."""
        levels = pore_model.expected_levels(reference)
        result = normalise_events(read_with_raw(reference, 4.0 * levels), pore_model, config)
        assert result.quality_score == pytest.approx(2.0)
        assert not passes_quality_filter(result.quality_score, config.quality_threshold)

    def test_narrow_read_is_rejected(self, reference, pore_model, config):
        """A read half as spread as the model is rejected."""
        levels = pore_model.expected_levels(reference)
        result = normalise_events(read_with_raw(reference, 0.25 * levels), pore_model, config)
        assert result.quality_score == pytest.approx(-2.0)
        assert not passes_quality_filter(result.quality_score, config.quality_threshold)

    def test_flat_signal_has_infinite_score(self, reference, pore_model, config):
        """A flat signal cannot be scaled and never passes."""
        result = normalise_events(read_with_raw(reference, [80.0] * 50), pore_model, config)
        assert math.isinf(result.quality_score)
        assert not passes_quality_filter(result.quality_score, config.quality_threshold)

    def test_unknown_basecalls(self, pore_model, config):
        """Basecalls with no known 5-mer give an infinite score."""
        result = normalise_events(read_with_raw('GGGGGGGG', np.arange(10.0)), pore_model, config)
        assert math.isinf(result.quality_score)

    def test_segmented(self, good_read, pore_model):
        """Segmentation replaces samples with fewer event means."""
        config = TrainingConfig(segment_events=True, segment_threshold=4.0, segment_min_duration=2)
        result = normalise_events(good_read, pore_model, config)
        assert 0 < len(result.events) < len(good_read.raw)


class TestSegmentSignal:

    def test_step_signal(self):
        """A three-step signal gives three segments."""
        signal = np.concatenate([np.full(20, 60.0), np.full(20, 90.0), np.full(20, 70.0)])
        means = segment_signal(signal, threshold=5.0, min_duration=2)
        assert len(means) == 3
        np.testing.assert_allclose(means, [60.0, 90.0, 70.0], atol=3.0)

    def test_short_segments_dropped(self):
        """A single-sample spike is absorbed."""
        signal = np.concatenate([np.full(20, 60.0), [120.0], np.full(20, 60.0)])
        means = segment_signal(signal, threshold=5.0, min_duration=2)
        assert all(abs(m - 60.0) < 5.0 for m in means)

    def test_tiny_input(self):
        """A one-sample signal is its own segment."""
        np.testing.assert_array_equal(segment_signal(np.array([3.0])), [3.0])
