"""
Log-space probability arithmetic.

Probabilities are stored as natural logarithms. A probability of exactly zero
is stored as NaN ("log of zero") rather than -inf, so a single ``isnan`` check
identifies it everywhere.

All functions take scalars or numpy arrays. Scalars go through ``math`` and
come back as Python floats; arrays are handled elementwise and come back as
float64 arrays. Algorithms follow Mann, "Numerically Stable Hidden Markov
Model Implementation" (2006).
"""

import math
from typing import Iterable, Union

import numpy as np
from scipy.special import logsumexp

from .exceptions import DivideByZeroError, NegativeLogError

LogValue = Union[float, np.ndarray]


def _scalar(*values) -> bool:
    return all(np.ndim(v) == 0 for v in values)


def to_log(x) -> LogValue:
    """Map from linear space to log space; zero maps to NaN."""
    if _scalar(x):
        x = float(x)
        if x == 0.0:
            return math.nan
        if x > 0.0:
            return math.log(x)
        raise NegativeLogError()

    x = np.asarray(x, dtype=np.float64)
    # NaN fails this comparison too: an undefined density has no log
    if not np.all(x >= 0.0):
        raise NegativeLogError()
    out = np.full(x.shape, np.nan)
    positive = x > 0.0
    out[positive] = np.log(x[positive])
    return out


def from_log(lx) -> LogValue:
    """Map from log space back to linear space; NaN maps to 0.0."""
    if _scalar(lx):
        lx = float(lx)
        return 0.0 if math.isnan(lx) else math.exp(lx)

    lx = np.asarray(lx, dtype=np.float64)
    return np.where(np.isnan(lx), 0.0, np.exp(lx))


def log_add(lx, ly) -> LogValue:
    """
    Log of exp(lx) + exp(ly).

    NaN (probability zero) is the identity: log_add(NaN, y) == y.
    The larger argument is factored out so the exponential never overflows.
    """
    if _scalar(lx, ly):
        lx, ly = float(lx), float(ly)
        if math.isnan(lx):
            return ly
        if math.isnan(ly):
            return lx
        if lx > ly:
            return lx + math.log1p(math.exp(ly - lx))
        return ly + math.log1p(math.exp(lx - ly))

    lx, ly = np.broadcast_arrays(
        np.asarray(lx, dtype=np.float64), np.asarray(ly, dtype=np.float64)
    )
    hi = np.fmax(lx, ly)
    lo = np.fmin(lx, ly)
    with np.errstate(invalid='ignore'):
        both = hi + np.log1p(np.exp(lo - hi))
    return np.where(np.isnan(lx), ly, np.where(np.isnan(ly), lx, both))


def log_mul(lx, ly) -> LogValue:
    """Log of exp(lx) * exp(ly). Zero is absorbing."""
    if _scalar(lx, ly):
        lx, ly = float(lx), float(ly)
        if math.isnan(lx) or math.isnan(ly):
            return math.nan
        return lx + ly

    # NaN propagates through addition
    return np.asarray(lx, dtype=np.float64) + np.asarray(ly, dtype=np.float64)


def log_div(lx, ly) -> LogValue:
    """Log of exp(lx) / exp(ly). Raises DivideByZeroError if ly is NaN."""
    if _scalar(lx, ly):
        lx, ly = float(lx), float(ly)
        if math.isnan(ly):
            raise DivideByZeroError()
        if math.isnan(lx):
            return math.nan
        return lx - ly

    ly = np.asarray(ly, dtype=np.float64)
    if np.any(np.isnan(ly)):
        raise DivideByZeroError()
    return np.asarray(lx, dtype=np.float64) - ly


def log_greater_than(lx, ly):
    """
    Whether exp(lx) > exp(ly).

    NaN sorts below every finite log-probability; NaN vs NaN is False.
    """
    if _scalar(lx, ly):
        lx, ly = float(lx), float(ly)
        if math.isnan(lx):
            return False
        if math.isnan(ly):
            return True
        return lx > ly

    lx = np.asarray(lx, dtype=np.float64)
    ly = np.asarray(ly, dtype=np.float64)
    return np.where(np.isnan(lx), False, np.where(np.isnan(ly), True, lx > ly))


def log_sum(values: Iterable[float]) -> float:
    """n-ary log_add. NaN entries contribute nothing; all-NaN gives NaN."""
    arr = np.asarray(list(values) if not isinstance(values, np.ndarray) else values,
                     dtype=np.float64).ravel()
    arr = arr[~np.isnan(arr)]
    if arr.size == 0:
        return math.nan
    return float(logsumexp(arr))
