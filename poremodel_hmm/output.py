"""
Trained pore model table.

One row per successfully fitted reference position:

    kmer  ONT_mean  ONT_stdv  pi_1  mean_1  stdv_1  pi_2  mean_2  stdv_2

ONT_mean/ONT_stdv are the pore-model values used to seed component 1.
Older tables labelled the fitted columns "pi_1 mean_1 stdv_2 pi_2 mean_1
stdv_2"; the values and their order are the same, only the labels differ.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence, Union

import pandas as pd

from .exceptions import ConfigurationError
from .mixture import MixtureFit

TABLE_COLUMNS = [
    'kmer', 'ONT_mean', 'ONT_stdv',
    'pi_1', 'mean_1', 'stdv_1',
    'pi_2', 'mean_2', 'stdv_2',
]


@dataclass(frozen=True)
class FittedPosition:
    """Mixture fit for one reference position."""
    position: int
    kmer: str
    model_mean: float
    model_std: float
    fit: MixtureFit

    def to_row(self) -> dict:
        return dict(zip(
            TABLE_COLUMNS,
            (self.kmer, self.model_mean, self.model_std) + self.fit.as_tuple(),
        ))


def model_table(fits: Sequence[FittedPosition]) -> pd.DataFrame:
    """Fits as a DataFrame in table column order."""
    return pd.DataFrame([f.to_row() for f in fits], columns=TABLE_COLUMNS)


def write_model_table(fits: List[FittedPosition], output_path: Union[str, Path]) -> Path:
    """
    Write the trained model table as TSV.

    Args:
        fits: Fitted positions, already in output order
        output_path: Destination file

    Returns:
        Path written
    """
    output_path = Path(output_path)
    try:
        model_table(fits).to_csv(output_path, sep='\t', index=False)
    except OSError as e:
        raise ConfigurationError(f"Cannot write output table {output_path}: {e}") from e
    return output_path
