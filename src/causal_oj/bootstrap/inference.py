"""
Bootstrap confidence intervals for treatment-effect curves.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from .aggregator import IntervalAggregator, MIN_SUCCESSFUL_RESAMPLES
from .reshaper import reshape_intervals
from .resampler import BootstrapResampler
from ..config import BootstrapConfig
from ..data.observations import ObservationSet
from ..errors import DegenerateResampleError, InsufficientSuccessfulResamplesError, SchemaMismatchError
from ..models.estimators import EstimatorFactory


logger = logging.getLogger(__name__)

_OK, _FAILED, _SKIPPED = 'ok', 'failed', 'skipped'


@dataclass
class BootstrapResult:
    """Point estimates and percentile bounds, all shaped [Q, O, T]."""
    point_estimate: np.ndarray
    lower: np.ndarray
    upper: np.ndarray
    query_points: np.ndarray
    percentiles: Tuple[float, float]
    n_requested: int
    n_succeeded: int
    failures: List[DegenerateResampleError] = field(default_factory=list)
    cancelled: bool = False
    outcome_names: List[str] = field(default_factory=list)
    treatment_names: List[str] = field(default_factory=list)
    modifier_names: List[str] = field(default_factory=list)

    @property
    def n_failed(self) -> int:
        return len(self.failures)

    def to_frame(self) -> pd.DataFrame:
        """Tidy table with one row per (query point, outcome, treatment)."""
        return reshape_intervals(
            self.point_estimate, self.lower, self.upper, self.query_points,
            self.outcome_names, self.treatment_names, feature_names=self.modifier_names
        )

    def summary(self) -> Dict[str, Any]:
        return {
            'n_requested': self.n_requested,
            'n_succeeded': self.n_succeeded,
            'n_failed': self.n_failed,
            'cancelled': self.cancelled,
            'percentiles': list(self.percentiles),
            'n_query_points': int(self.point_estimate.shape[0]),
            'failed_resamples': [failure.resample_index for failure in self.failures],
        }


class BootstrapInference:
    """
    Fits one estimator on the full data and B more on bootstrap resamples.

    Each resample gets its own estimator from the factory, so ensemble members
    share no fitted state. Resample fits run through joblib's threading backend
    and are collected in resample order.
    """

    def __init__(self, estimator_factory: EstimatorFactory, config: Optional[BootstrapConfig] = None):
        """
        Initialize the bootstrap.

        Args:
            estimator_factory: Zero-argument callable returning an unfitted estimator
            config: Bootstrap settings (defaults to BootstrapConfig())
        """
        self.estimator_factory = estimator_factory
        self.config = config if config is not None else BootstrapConfig()
        self.aggregator = IntervalAggregator(
            self.config.lower_percentile,
            self.config.upper_percentile,
            correction=self.config.correction
        )

    def _fit_and_evaluate(self, observations: ObservationSet, query_points: np.ndarray) -> np.ndarray:
        estimator = self.estimator_factory()
        estimator.fit(
            observations.outcomes,
            observations.treatments,
            observations.effect_modifiers,
            observations.controls
        )
        return np.asarray(estimator.effect_at(query_points), dtype=float)

    def _fit_resample(
        self,
        resample_index: int,
        resample: ObservationSet,
        query_points: np.ndarray,
        cancel_event: Optional[threading.Event]
    ) -> Tuple[str, Any]:
        if cancel_event is not None and cancel_event.is_set():
            return _SKIPPED, None

        try:
            effect = self._fit_and_evaluate(resample, query_points)
        except Exception as e:
            error = DegenerateResampleError(resample_index, f"{type(e).__name__}: {e}")
            error.__cause__ = e
            logger.warning(str(error))
            return _FAILED, error

        return _OK, effect

    def run(
        self,
        observations: ObservationSet,
        query_points: Optional[np.ndarray] = None,
        cancel_event: Optional[threading.Event] = None
    ) -> BootstrapResult:
        """
        Estimate effects with bootstrap percentile intervals.

        Args:
            observations: Full observation set (not modified)
            query_points: (Q, P) effect-modifier values; resolved from the config when None
            cancel_event: Set it to skip resamples that have not started yet

        Returns:
            BootstrapResult with point estimates from the full-data fit
        """
        if query_points is None:
            query_points = self.config.resolve_query_points(observations.effect_modifiers)
        query_points = np.asarray(query_points, dtype=float)
        if query_points.ndim == 1:
            query_points = query_points.reshape(-1, 1)

        n_resamples = self.config.resample_count
        logger.info(f"Fitting full-data estimator on {len(observations)} rows "
                    f"at {len(query_points)} query points")
        point_estimate = self._fit_and_evaluate(observations, query_points)

        logger.info(f"Fitting {n_resamples} bootstrap resamples (n_jobs={self.config.n_jobs})")
        resampler = BootstrapResampler(n_resamples, random_state=self.config.random_state)
        outcomes = Parallel(n_jobs=self.config.n_jobs, backend='threading')(
            delayed(self._fit_resample)(i, resample, query_points, cancel_event)
            for i, resample in enumerate(resampler.resample(observations))
        )

        effects = [payload for status, payload in outcomes if status == _OK]
        failures = [payload for status, payload in outcomes if status == _FAILED]
        n_skipped = sum(1 for status, _ in outcomes if status == _SKIPPED)
        cancelled = n_skipped > 0

        logger.info(f"Bootstrap finished: {len(effects)} succeeded, {len(failures)} failed, "
                    f"{n_skipped} skipped")

        if cancelled and len(effects) < MIN_SUCCESSFUL_RESAMPLES:
            raise InsufficientSuccessfulResamplesError(
                len(effects), len(failures),
                message=(f"Bootstrap cancelled with only {len(effects)} successful resamples "
                         f"({len(failures)} failed, {n_skipped} skipped); "
                         f"at least {MIN_SUCCESSFUL_RESAMPLES} are required")
            )

        lower, upper = self.aggregator.aggregate(effects, n_failed=len(failures))
        if lower.shape != point_estimate.shape:
            raise SchemaMismatchError(
                f"Bootstrap effect shape {lower.shape} differs from full-data shape {point_estimate.shape}"
            )
        percentiles = self.aggregator.percentile_ranks(point_estimate.size)

        return BootstrapResult(
            point_estimate=point_estimate,
            lower=lower,
            upper=upper,
            query_points=query_points,
            percentiles=percentiles,
            n_requested=n_resamples,
            n_succeeded=len(effects),
            failures=failures,
            cancelled=cancelled,
            outcome_names=list(observations.outcome_names),
            treatment_names=list(observations.treatment_names),
            modifier_names=list(observations.modifier_names),
        )
