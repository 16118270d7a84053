"""
Convergence criteria for the burn-in phase of the Markov chain.

A criterion consumes the log-likelihood samples of the chain one completed
block at a time and decides whether the chain has stabilised.
"""
from typing import List, Optional, Sequence

import numpy as np


class ConvergenceCriterion:
    """
    Base class for convergence criteria. Subclasses keep whatever history
    they need between calls to `check`.
    """
    def check(self, samples: Sequence[float]) -> bool:
        """
        Consume one block of log-likelihood samples.

        :param samples: Log-likelihood of the chain after each step of the block.
        :return: True if the chain is judged to have converged.
        """
        raise NotImplementedError("Subclasses should implement this method.")

    def report(self) -> str:
        """ Diagnostic message about the last check, possibly empty. """
        return ""

    def reset(self) -> None:
        """ Forget all history. """
        pass


class EntropyConvergenceCriterion(ConvergenceCriterion):
    """
    Declares convergence when the distribution of the log-likelihood stops
    changing between consecutive sample blocks.

    Each block is summarised by its mean and by the differential entropy of a
    normal distribution with the block's variance,

        H = 0.5 * log(2 * pi * e * (var + scale_floor**2)).

    Two consecutive blocks agree when the standardised drift of the mean,

        |mean_i - mean_{i-1}| / sqrt((var_i + var_{i-1}) / 2 + scale_floor**2),

    is below `drift_tolerance` and the entropies differ by less than
    `entropy_tolerance`. The chain has converged once `patience` consecutive
    comparisons agree; after that `check` keeps returning True.

    `scale_floor` is the fluctuation size (in nats) below which differences in
    the log-likelihood are ignored, which keeps constant blocks finite.
    """
    def __init__(self,
                 drift_tolerance: float = 0.5,
                 entropy_tolerance: float = 0.25,
                 patience: int = 2,
                 scale_floor: float = 1.0,
                 ):
        if drift_tolerance <= 0 or entropy_tolerance <= 0:
            raise ValueError("Tolerances must be positive.")
        if patience < 1:
            raise ValueError(f"Patience must be at least 1, got {patience}.")
        if scale_floor <= 0:
            raise ValueError(f"Scale floor must be positive, got {scale_floor}.")

        self.drift_tolerance = float(drift_tolerance)
        self.entropy_tolerance = float(entropy_tolerance)
        self.patience = int(patience)
        self.scale_floor = float(scale_floor)
        self.reset()

    def reset(self) -> None:
        self.means: List[float] = []
        self.variances: List[float] = []
        self.entropies: List[float] = []
        self.stable_streak = 0
        self.converged = False
        self.last_drift: Optional[float] = None
        self.last_entropy_change: Optional[float] = None

    def _entropy(self, variance: float) -> float:
        return 0.5 * np.log(2.0 * np.pi * np.e * (variance + self.scale_floor ** 2))

    def check(self, samples: Sequence[float]) -> bool:
        samples = np.asarray(samples, dtype=np.float64)
        if samples.size == 0:
            raise ValueError("Cannot check convergence on an empty sample block.")
        if not np.all(np.isfinite(samples)):
            raise ValueError("Sample block contains non-finite log-likelihood values.")

        mean = float(samples.mean())
        variance = float(samples.var())
        entropy = float(self._entropy(variance))

        if self.means:
            pooled = 0.5 * (variance + self.variances[-1]) + self.scale_floor ** 2
            self.last_drift = abs(mean - self.means[-1]) / float(np.sqrt(pooled))
            self.last_entropy_change = abs(entropy - self.entropies[-1])

            if (self.last_drift < self.drift_tolerance and
                self.last_entropy_change < self.entropy_tolerance):
                self.stable_streak += 1
            else:
                self.stable_streak = 0

        self.means.append(mean)
        self.variances.append(variance)
        self.entropies.append(entropy)

        if self.stable_streak >= self.patience:
            self.converged = True

        return self.converged

    def report(self) -> str:
        if not self.means:
            return ""
        message = (f"block {len(self.means)}: mean = {self.means[-1]:.4f}, "
                   f"entropy = {self.entropies[-1]:.4f}")
        if self.last_drift is not None:
            message += (f", drift = {self.last_drift:.4f}, "
                        f"entropy change = {self.last_entropy_change:.4f}, "
                        f"stable {self.stable_streak}/{self.patience}")
        if self.converged:
            message += ", converged"
        return message
