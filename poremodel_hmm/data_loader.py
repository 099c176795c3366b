"""
Training data loading.

The training file is line oriented:

    <reference sequence>
    <number of reads>
    <basecalls>            \
    <roi start> <roi end>   } repeated once per read
    <raw signal samples>   /

Reads are yielded lazily so a full training file never has to fit in memory.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, TextIO, Tuple

import numpy as np

from .exceptions import ConfigurationError


@dataclass(frozen=True, eq=False)
class TrainingRead:
    """One read: basecalls, region of interest on the reference, raw signal."""
    read_id: str
    basecalls: str
    roi_bounds: Tuple[int, int]   # [start, end) on the reference
    raw: np.ndarray               # Raw current samples (pA)

    def __len__(self) -> int:
        return len(self.raw)

    def reference_window(self, reference: str) -> str:
        start, end = self.roi_bounds
        return reference[start:end]


def parse_read(read_id: str, basecall_line: str, bounds_line: str,
               signal_line: str) -> TrainingRead:
    """
    Parse the three lines of one read.

    Raises:
        ValueError: if the bounds or signal lines are malformed
    """
    fields = bounds_line.split()
    if len(fields) != 2:
        raise ValueError(f"expected '<start> <end>', got {bounds_line.strip()!r}")
    start, end = int(fields[0]), int(fields[1])
    if start < 0 or end <= start:
        raise ValueError(f"invalid region of interest ({start}, {end})")

    raw = np.array([float(v) for v in signal_line.split()], dtype=np.float64)
    if raw.size == 0:
        raise ValueError("empty raw signal line")

    return TrainingRead(
        read_id=read_id,
        basecalls=basecall_line.strip().upper(),
        roi_bounds=(start, end),
        raw=raw,
    )


class TrainingDataFile:
    """Reader for the training data format."""

    def __init__(self, filepath: str):
        """
        Open the file and read its header.

        Args:
            filepath: Path to the training data

        Raises:
            ConfigurationError: if the file is unreadable or the header is invalid
        """
        self.filepath = Path(filepath)
        try:
            self._handle: Optional[TextIO] = open(self.filepath, 'r')
        except OSError as e:
            raise ConfigurationError(f"Cannot open training data {filepath}: {e}") from e

        self.reference = self._handle.readline().strip().upper()
        count_line = self._handle.readline().strip()
        if not self.reference:
            self.close()
            raise ConfigurationError(f"{filepath}: missing reference line")
        try:
            self.read_count = int(count_line)
        except ValueError:
            self.close()
            raise ConfigurationError(
                f"{filepath}: expected read count on line 2, got {count_line!r}"
            ) from None

        self.n_malformed = 0

    def iter_reads(self) -> Iterator[TrainingRead]:
        """
        Yield reads in file order.

        Malformed reads are reported and skipped; a truncated final read
        ends iteration.
        """
        if self._handle is None:
            raise ValueError(f"{self.filepath} is closed")

        index = 0
        while True:
            basecalls = self._handle.readline()
            if not basecalls:
                break
            bounds = self._handle.readline()
            signal = self._handle.readline()
            if not signal:
                print(f"Warning: truncated read {index} at end of {self.filepath.name}")
                self.n_malformed += 1
                break

            try:
                read = parse_read(f'read_{index}', basecalls, bounds, signal)
            except ValueError as e:
                print(f"Warning: skipping malformed read {index}: {e}")
                self.n_malformed += 1
            else:
                yield read
            index += 1

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> 'TrainingDataFile':
        return self

    def __exit__(self, *exc) -> None:
        self.close()
