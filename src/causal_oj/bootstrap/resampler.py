"""
Bootstrap resampling of observation sets.
"""

import logging
from typing import Iterator, List, Optional, Union

import numpy as np
from sklearn.utils import check_random_state

from ..data.observations import ObservationSet


logger = logging.getLogger(__name__)


class BootstrapResampler:
    """Draws B resamples of size N uniformly with replacement."""

    def __init__(self, n_resamples: int, random_state: Optional[Union[int, np.random.RandomState]] = None):
        """
        Initialize the resampler.

        Args:
            n_resamples: Number of resamples (B), at least 1
            random_state: Seed or RandomState for reproducible draws
        """
        if n_resamples < 1:
            raise ValueError(f"n_resamples must be at least 1, got {n_resamples}")
        self.n_resamples = n_resamples
        self.random_state = random_state

    def draw_indices(self, n_observations: int) -> List[np.ndarray]:
        """
        Row indices for every resample.

        Args:
            n_observations: Size N of the original observation set, at least 1

        Returns:
            List of B integer arrays, each of length N with values in [0, N)
        """
        if n_observations < 1:
            raise ValueError(f"Cannot resample an empty observation set (N={n_observations})")

        rng = check_random_state(self.random_state)
        return [rng.randint(0, n_observations, size=n_observations) for _ in range(self.n_resamples)]

    def resample(self, observations: ObservationSet) -> Iterator[ObservationSet]:
        """
        Yield B resampled observation sets.

        The same row draw is applied to outcomes, treatments, effect modifiers and
        controls, so every resampled record is an original record. The input set is
        left untouched.
        """
        for indices in self.draw_indices(len(observations)):
            yield observations.take(indices)
