"""
Tests for the training data reader.
"""

import numpy as np
import pytest

from poremodel_hmm.data_loader import TrainingDataFile, parse_read
from poremodel_hmm.exceptions import ConfigurationError

from conftest import REFERENCE, write_training_data


class TestParseRead:

    def test_fields(self):
        """A read block is parsed into basecalls, bounds and raw signal."""
        read = parse_read('r1', 'aattgg\n', '2 8\n', '1.5 2.5 3.5\n')
        assert read.basecalls == 'AATTGG'
        assert read.roi_bounds == (2, 8)
        np.testing.assert_array_equal(read.raw, [1.5, 2.5, 3.5])
        assert len(read) == 3
        assert read.reference_window(REFERENCE) == REFERENCE[2:8]

    @pytest.mark.parametrize("bounds, signal", [
        ('2', '1.0'),
        ('8 2', '1.0'),
        ('-1 4', '1.0'),
        ('x 4', '1.0'),
        ('0 4', ''),
        ('0 4', '1.0 abc'),
    ])
    def test_malformed(self, bounds, signal):
        """Malformed bounds or signal lines raise ValueError."""
        with pytest.raises(ValueError):
            parse_read('r', 'AATT', bounds, signal)


class TestTrainingDataFile:

    def test_header_and_reads(self, tmp_path):
        """The header gives the reference and read count; reads follow in order."""
        path = write_training_data(tmp_path / "train.foh", [
            (REFERENCE, (0, 20), [80.0, 81.0]),
            (REFERENCE[:10], (0, 10), [70.0, 71.0, 72.0]),
        ])
        with TrainingDataFile(str(path)) as data:
            assert data.reference == REFERENCE
            assert data.read_count == 2
            reads = list(data.iter_reads())

        assert [r.read_id for r in reads] == ['read_0', 'read_1']
        assert reads[1].roi_bounds == (0, 10)
        np.testing.assert_array_equal(reads[1].raw, [70.0, 71.0, 72.0])

    def test_malformed_read_skipped(self, tmp_path):
        """A malformed read is counted and skipped."""
        path = tmp_path / "train.foh"
        path.write_text("\n".join([
            REFERENCE, "3",
            REFERENCE, "0 20", "80.0 81.0",
            REFERENCE, "20 0", "80.0 81.0",
            REFERENCE, "0 20", "82.0 83.0",
        ]) + "\n")
        data = TrainingDataFile(str(path))
        reads = list(data.iter_reads())
        data.close()
        assert [r.read_id for r in reads] == ['read_0', 'read_2']
        assert data.n_malformed == 1

    def test_truncated_final_read(self, tmp_path):
        """A read cut off at end of file is counted as malformed."""
        path = tmp_path / "train.foh"
        path.write_text("\n".join([REFERENCE, "2", REFERENCE, "0 20", "80.0 81.0",
                                   REFERENCE, "0 20"]) + "\n")
        with TrainingDataFile(str(path)) as data:
            reads = list(data.iter_reads())
            assert data.n_malformed == 1
        assert len(reads) == 1

    def test_missing_file(self, tmp_path):
        """A missing training file is a configuration error."""
        with pytest.raises(ConfigurationError):
            TrainingDataFile(str(tmp_path / "absent.foh"))

    def test_bad_count(self, tmp_path):
        """A non-numeric read count is a configuration error."""
        path = tmp_path / "train.foh"
        path.write_text(f"{REFERENCE}\nmany\n")
        with pytest.raises(ConfigurationError):
            TrainingDataFile(str(path))

    def test_closed(self, tmp_path):
        """Reading after close raises ValueError."""
        path = write_training_data(tmp_path / "train.foh", [])
        data = TrainingDataFile(str(path))
        data.close()
        with pytest.raises(ValueError):
            list(data.iter_reads())
