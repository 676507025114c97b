"""
Percentile intervals from an ensemble of bootstrap effect tensors.
"""

import logging
from typing import Sequence, Tuple

import numpy as np

from ..config import CORRECTIONS, validate_percentiles
from ..errors import InsufficientSuccessfulResamplesError, SchemaMismatchError


logger = logging.getLogger(__name__)

MIN_SUCCESSFUL_RESAMPLES = 2


class IntervalAggregator:
    """
    Computes per-cell empirical percentiles across bootstrap effect tensors.

    Percentiles use linear interpolation between order statistics. With
    correction='bonferroni' the tail mass outside each bound is divided by the
    number of cells, giving simultaneous coverage over all cells.
    """

    def __init__(self, lower_percentile: float = 1.0, upper_percentile: float = 99.0,
                 correction: str = 'none'):
        validate_percentiles(lower_percentile, upper_percentile)
        if correction not in CORRECTIONS:
            raise ValueError(f"correction must be one of {CORRECTIONS}, got {correction!r}")
        self.lower_percentile = lower_percentile
        self.upper_percentile = upper_percentile
        self.correction = correction

    def percentile_ranks(self, n_cells: int = 1) -> Tuple[float, float]:
        """
        Percentile ranks used for the bounds.

        Args:
            n_cells: Number of simultaneous intervals

        Returns:
            (lower, upper) percentile ranks
        """
        if self.correction == 'none' or n_cells <= 1:
            return self.lower_percentile, self.upper_percentile

        lower_tail = self.lower_percentile / n_cells
        upper_tail = (100.0 - self.upper_percentile) / n_cells
        return lower_tail, 100.0 - upper_tail

    def aggregate(self, effects: Sequence[np.ndarray], n_failed: int = 0) -> Tuple[np.ndarray, np.ndarray]:
        """
        Lower and upper bounds for every cell.

        Args:
            effects: Effect tensors from the successful resamples, all the same shape
            n_failed: Number of resamples whose fit failed

        Returns:
            (lower, upper) tensors with the shape of a single effect tensor
        """
        n_succeeded = len(effects)
        if n_succeeded == 0 or (n_failed > 0 and n_succeeded < MIN_SUCCESSFUL_RESAMPLES):
            raise InsufficientSuccessfulResamplesError(n_succeeded, n_failed)

        shapes = {np.shape(effect) for effect in effects}
        if len(shapes) != 1:
            raise SchemaMismatchError(f"Bootstrap effect tensors have inconsistent shapes: {sorted(shapes)}")

        stacked = np.stack([np.asarray(effect, dtype=float) for effect in effects], axis=0)
        n_cells = int(np.prod(stacked.shape[1:]))
        lower_rank, upper_rank = self.percentile_ranks(n_cells)

        lower, upper = np.percentile(stacked, [lower_rank, upper_rank], axis=0, method='linear')

        logger.debug(f"Aggregated {n_succeeded} resamples over {n_cells} cells "
                     f"at percentiles ({lower_rank:.4g}, {upper_rank:.4g})")
        return lower, upper
