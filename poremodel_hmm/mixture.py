"""
Two-component Gaussian mixture fitting by Expectation-Maximization.

Responsibilities are computed and normalised in log space, so positions with
thousands of pooled events never underflow. A fit that collapses a component
(for example when every observation is identical) fails with
NegativeLogError on the next density evaluation instead of returning a
degenerate answer.
"""

import math
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from .distributions import NormalDistribution
from .logspace import from_log, log_add, log_div, log_mul, log_sum, to_log


@dataclass(frozen=True)
class MixtureFit:
    """Fitted parameters of a two-component Gaussian mixture."""
    weight1: float
    mean1: float
    std1: float
    weight2: float
    mean2: float
    std2: float
    log_likelihood: float
    iterations: int
    converged: bool

    def as_tuple(self) -> Tuple[float, float, float, float, float, float]:
        """(weight1, mean1, std1, weight2, mean2, std2)"""
        return (self.weight1, self.mean1, self.std1,
                self.weight2, self.mean2, self.std2)


def _weighted_moments(x: np.ndarray, weights: np.ndarray) -> Tuple[float, float]:
    """Weighted mean and std; weights sum to one."""
    # Shift by x[0] so identical observations give exactly zero spread
    pivot = x[0]
    mean = pivot + float(np.sum(weights * (x - pivot)))
    variance = float(np.sum(weights * (x - mean) ** 2))
    return mean, math.sqrt(max(variance, 0.0))


def gaussian_mixture_em(
    mu1: float,
    sd1: float,
    mu2: float,
    sd2: float,
    observations: Sequence[float],
    threshold: float = 1e-4,
    max_iterations: int = 10000,
) -> MixtureFit:
    """
    Fit a two-component Gaussian mixture starting from the given components.

    Mixture weights start at 0.5 each. Iteration stops when the total
    log-likelihood changes by less than ``threshold``.

    Args:
        mu1, sd1: Initial first component
        mu2, sd2: Initial second component
        observations: Pooled events for one reference position
        threshold: Convergence threshold on the log-likelihood change
        max_iterations: Upper bound on EM iterations

    Returns:
        MixtureFit; ``converged`` is False if max_iterations was reached

    Raises:
        ValueError: if there are no observations
        NegativeLogError: if a component collapses to an undefined density
        DivideByZeroError: if an observation has zero density under both
            components, or a component loses all of its weight
    """
    x = np.asarray(observations, dtype=np.float64).ravel()
    if x.size == 0:
        raise ValueError("Cannot fit a mixture to zero observations")

    log_n = to_log(float(x.size))
    w1 = w2 = 0.5
    previous = math.nan
    log_likelihood = math.nan
    converged = False

    iteration = 0
    while iteration < max_iterations:
        iteration += 1

        # E-step: log responsibilities
        joint1 = log_mul(to_log(w1), NormalDistribution(mu1, sd1).log_pdf(x))
        joint2 = log_mul(to_log(w2), NormalDistribution(mu2, sd2).log_pdf(x))
        marginal = log_add(joint1, joint2)
        resp1 = log_div(joint1, marginal)
        resp2 = log_div(joint2, marginal)
        log_likelihood = float(np.sum(marginal))

        # M-step
        total1 = log_sum(resp1)
        total2 = log_sum(resp2)
        mu1, sd1 = _weighted_moments(x, from_log(log_div(resp1, total1)))
        mu2, sd2 = _weighted_moments(x, from_log(log_div(resp2, total2)))
        w1 = from_log(log_div(total1, log_n))
        w2 = from_log(log_div(total2, log_n))

        if not math.isnan(previous) and abs(log_likelihood - previous) < threshold:
            converged = True
            break
        previous = log_likelihood

    return MixtureFit(
        weight1=w1, mean1=mu1, std1=sd1,
        weight2=w2, mean2=mu2, std2=sd2,
        log_likelihood=log_likelihood,
        iterations=iteration,
        converged=converged,
    )
