"""
Pore model: expected current level for every 5-mer.

Loads ONT-style model tables and provides (mean, std) lookups for the
emission distributions of the profile HMM and the mixture seeds.
"""

from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Tuple

import numpy as np

from .exceptions import ConfigurationError, ModelLookupError


class PoreModel:
    """
    Read-only mapping from k-mer to (mean, std) current in pA.

    Built once per run and passed explicitly to the builder and the trainer;
    nothing mutates it after loading.
    """

    def __init__(self, levels: Mapping[str, Tuple[float, float]], kmer_length: int = 5):
        table: Dict[str, Tuple[float, float]] = {}
        for kmer, (mean, std) in levels.items():
            if len(kmer) != kmer_length:
                raise ConfigurationError(
                    f"k-mer {kmer!r} does not have length {kmer_length}"
                )
            table[kmer.upper()] = (float(mean), float(std))

        self.kmer_length = kmer_length
        self._table = MappingProxyType(table)

    @classmethod
    def from_file(cls, model_path: str, kmer_length: int = 5) -> 'PoreModel':
        """
        Load a model table from file.

        Columns are tab-separated: kmer, level_mean, level_stdv, then anything.
        Blank lines, '#' comments and the 'kmer' header row are skipped.

        Args:
            model_path: Path to the model table

        Returns:
            Loaded PoreModel
        """
        path = Path(model_path)
        levels = {}
        try:
            with open(path, 'r') as f:
                for line_number, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line or line.startswith('#') or line.startswith('kmer'):
                        continue
                    parts = line.split('\t')
                    if len(parts) < 3:
                        raise ConfigurationError(
                            f"{path}:{line_number}: expected kmer, mean and std columns"
                        )
                    try:
                        levels[parts[0]] = (float(parts[1]), float(parts[2]))
                    except ValueError as e:
                        raise ConfigurationError(f"{path}:{line_number}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read pore model {path}: {e}") from e

        model = cls(levels, kmer_length=kmer_length)
        print(f"Loaded {len(model)} {kmer_length}-mer entries from {path.name}")
        return model

    def get_emission_params(self, kmer: str) -> Tuple[float, float]:
        """
        Get Normal distribution parameters for a k-mer.

        Raises:
            ModelLookupError: if the k-mer is not in the model
        """
        try:
            return self._table[kmer.upper()]
        except KeyError:
            raise ModelLookupError(kmer) from None

    def kmers(self, sequence: str) -> Iterator[str]:
        """All overlapping k-mers of a sequence, in order."""
        for i in range(len(sequence) - self.kmer_length + 1):
            yield sequence[i:i + self.kmer_length]

    def expected_levels(self, sequence: str) -> np.ndarray:
        """Model means of the k-mers in a sequence, skipping unknown ones."""
        means = [self._table[k][0] for k in self.kmers(sequence.upper()) if k in self._table]
        return np.array(means, dtype=np.float64)

    def __len__(self) -> int:
        return len(self._table)

    def __contains__(self, kmer: str) -> bool:
        return kmer.upper() in self._table
