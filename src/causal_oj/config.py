"""
Configuration for bootstrap interval estimation.
"""

import json
import logging
from dataclasses import dataclass, fields, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np

from .errors import InvalidPercentileRangeError


logger = logging.getLogger(__name__)

DEFAULT_QUERY_STEP = 0.1
CORRECTIONS = ('none', 'bonferroni')

QuerySpec = Union[List[float], List[List[float]], Dict[str, float]]


@dataclass
class BootstrapConfig:
    """
    Settings for one bootstrap interval request.

    Attributes:
        resample_count: Number of bootstrap resamples (B)
        lower_percentile: Lower percentile rank in [0, 100]
        upper_percentile: Upper percentile rank in [0, 100]
        query_points: Explicit list of effect-modifier values, or a mapping with
            'min', 'max' and 'step' keys. None means the observed range with step 0.1.
        correction: Multiple-comparison correction across cells ('none' or 'bonferroni')
        n_jobs: Number of parallel workers for the resample fits
        random_state: Seed for the resampler
    """
    resample_count: int = 20
    lower_percentile: float = 1.0
    upper_percentile: float = 99.0
    query_points: Optional[QuerySpec] = None
    correction: str = 'none'
    n_jobs: int = 1
    random_state: Optional[int] = 42

    def __post_init__(self):
        if int(self.resample_count) != self.resample_count or self.resample_count < 1:
            raise ValueError(f"resample_count must be a positive integer, got {self.resample_count}")
        self.resample_count = int(self.resample_count)

        validate_percentiles(self.lower_percentile, self.upper_percentile)

        if self.correction not in CORRECTIONS:
            raise ValueError(f"correction must be one of {CORRECTIONS}, got {self.correction!r}")

        if self.query_points is not None:
            _validate_query_spec(self.query_points)

    @classmethod
    def from_dict(cls, options: Dict[str, Any]) -> 'BootstrapConfig':
        """
        Build a configuration from a plain mapping, rejecting unknown keys.

        Args:
            options: Mapping of option names to values

        Returns:
            Validated configuration
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ValueError(f"Unknown configuration option(s): {', '.join(unknown)}")
        return cls(**options)

    @classmethod
    def from_json(cls, filepath: Union[str, Path]) -> 'BootstrapConfig':
        """Load a configuration from a JSON file."""
        with open(filepath, 'r') as f:
            options = json.load(f)
        logger.info(f"Loaded bootstrap configuration from {filepath}")
        return cls.from_dict(options)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def resolve_query_points(self, effect_modifiers: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Turn the query point option into a (Q, P) array.

        Args:
            effect_modifiers: Observed effect-modifier matrix, used when no explicit
                query points are configured

        Returns:
            Array of query points with one row per point
        """
        spec = self.query_points

        if spec is None:
            if effect_modifiers is None:
                raise ValueError("query_points not configured and no effect modifiers given to derive them")
            observed = np.asarray(effect_modifiers, dtype=float)
            if observed.ndim == 2 and observed.shape[1] != 1:
                raise ValueError(
                    f"Cannot derive a query grid for {observed.shape[1]} effect modifiers; "
                    f"configure query_points explicitly"
                )
            observed = observed.ravel()
            return make_query_grid(observed.min(), observed.max(), DEFAULT_QUERY_STEP)

        if isinstance(spec, dict):
            return make_query_grid(spec['min'], spec['max'], spec['step'])

        points = np.asarray(spec, dtype=float)
        if points.ndim == 1:
            points = points.reshape(-1, 1)
        return points


def validate_percentiles(lower: float, upper: float) -> None:
    """Raise InvalidPercentileRangeError unless 0 <= lower < upper <= 100."""
    if not 0 <= lower <= 100:
        raise InvalidPercentileRangeError('lower_percentile', lower, upper)
    if not 0 <= upper <= 100:
        raise InvalidPercentileRangeError('upper_percentile', lower, upper)
    if lower >= upper:
        raise InvalidPercentileRangeError('percentile range', lower, upper)


def make_query_grid(minimum: float, maximum: float, step: float) -> np.ndarray:
    """
    Evenly spaced grid from minimum up to (and not beyond) maximum.

    Returns:
        Array of shape (Q, 1)
    """
    if step <= 0:
        raise ValueError(f"query step must be positive, got {step}")
    if maximum < minimum:
        raise ValueError(f"query max ({maximum}) is below query min ({minimum})")

    n_points = int(np.floor((maximum - minimum) / step + 1e-9)) + 1
    grid = minimum + step * np.arange(n_points)
    return grid.reshape(-1, 1)


def _validate_query_spec(spec: QuerySpec) -> None:
    if isinstance(spec, dict):
        missing = [key for key in ('min', 'max', 'step') if key not in spec]
        if missing:
            raise ValueError(f"query_points range is missing key(s): {', '.join(missing)}")
        if spec['step'] <= 0:
            raise ValueError(f"query_points step must be positive, got {spec['step']}")
        if spec['max'] < spec['min']:
            raise ValueError(f"query_points max ({spec['max']}) is below min ({spec['min']})")
    elif len(spec) == 0:
        raise ValueError("query_points list is empty")
