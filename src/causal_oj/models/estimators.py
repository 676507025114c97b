"""
Treatment-effect estimators behind a common fit / effect_at interface.
"""

import numpy as np
from typing import Any, Callable, Dict, Optional, Protocol
import logging

import doubleml as dml
from econml.dml import DML
from sklearn.base import clone
from sklearn.ensemble import RandomForestRegressor
from sklearn.linear_model import ElasticNetCV, MultiTaskElasticNetCV
from sklearn.multioutput import MultiOutputRegressor
from sklearn.preprocessing import PolynomialFeatures
from xgboost import XGBRegressor


logger = logging.getLogger(__name__)

LEARNER_METHODS = ('random_forest', 'elastic_net', 'xgboost')


class EffectEstimator(Protocol):
    """Anything that can be fitted on (Y, T, X, W) and evaluated at query points."""

    def fit(self, outcomes: np.ndarray, treatments: np.ndarray,
            effect_modifiers: np.ndarray, controls: Optional[np.ndarray] = None) -> Any:
        ...

    def effect_at(self, query_points: np.ndarray) -> np.ndarray:
        ...


EstimatorFactory = Callable[[], EffectEstimator]


def get_base_learners(method: str = 'random_forest', random_state: int = 42) -> Dict[str, Any]:
    """
    Nuisance learners for the outcome and treatment regressions.

    Args:
        method: One of 'random_forest', 'elastic_net', 'xgboost'
        random_state: Random seed for reproducibility

    Returns:
        Dictionary with unfitted 'model_y' and 'model_t' regressors
    """
    learners = {
        'random_forest': {
            'model_y': RandomForestRegressor(n_estimators=100, min_samples_leaf=5,
                                             random_state=random_state),
            'model_t': RandomForestRegressor(n_estimators=100, min_samples_leaf=5,
                                             random_state=random_state)
        },
        'elastic_net': {
            'model_y': ElasticNetCV(l1_ratio=[0.1, 0.5, 0.9], cv=3, random_state=random_state),
            'model_t': ElasticNetCV(l1_ratio=[0.1, 0.5, 0.9], cv=3, random_state=random_state)
        },
        'xgboost': {
            'model_y': XGBRegressor(n_estimators=200, max_depth=4, learning_rate=0.1,
                                    random_state=random_state, n_jobs=1),
            'model_t': XGBRegressor(n_estimators=200, max_depth=4, learning_rate=0.1,
                                    random_state=random_state, n_jobs=1)
        }
    }
    if method not in learners:
        raise ValueError(f"Unknown learner method {method!r}; expected one of {LEARNER_METHODS}")
    return learners[method]


def _for_targets(model: Any, n_targets: int) -> Any:
    """Wrap single-target regressors so they can fit several target columns."""
    if n_targets == 1 or isinstance(model, RandomForestRegressor):
        return model
    return MultiOutputRegressor(model)


def _as_column_matrix(values: np.ndarray) -> np.ndarray:
    values = np.asarray(values, dtype=float)
    return values.reshape(-1, 1) if values.ndim == 1 else values


def collapse_effect(effect: np.ndarray) -> np.ndarray:
    """Drop size-1 outcome/treatment dimensions of a [Q, O, T] tensor, keeping Q."""
    effect = np.asarray(effect)
    n_query = effect.shape[0]
    collapsed = effect.reshape(n_query, *[d for d in effect.shape[1:] if d != 1])
    return collapsed


class DMLEffectEstimator:
    """
    Heterogeneous effects with econml's DML.

    The final stage regresses outcome residuals on treatment residuals interacted
    with a polynomial featurization of the effect modifiers, so the effect is a
    smooth function of the modifiers.
    """

    def __init__(
        self,
        method: str = 'random_forest',
        featurizer_degree: int = 2,
        cv: int = 3,
        random_state: int = 42
    ):
        """
        Initialize the estimator.

        Args:
            method: Nuisance learner preset (see get_base_learners)
            featurizer_degree: Degree of the polynomial features of the effect modifiers
            cv: Number of cross-fitting folds
            random_state: Random seed for reproducibility
        """
        self.method = method
        self.featurizer_degree = featurizer_degree
        self.cv = cv
        self.random_state = random_state
        self.model = None
        self._n_outcomes = None
        self._n_treatments = None

    def _build_model(self, n_outcomes: int, n_treatments: int) -> DML:
        learners = get_base_learners(self.method, self.random_state)
        if n_outcomes == 1:
            model_final = ElasticNetCV(l1_ratio=[0.1, 0.5, 0.9], cv=3, fit_intercept=False,
                                       random_state=self.random_state)
        else:
            model_final = MultiTaskElasticNetCV(l1_ratio=[0.1, 0.5, 0.9], cv=3, fit_intercept=False,
                                                random_state=self.random_state)
        return DML(
            model_y=_for_targets(learners['model_y'], n_outcomes),
            model_t=_for_targets(learners['model_t'], n_treatments),
            model_final=model_final,
            featurizer=PolynomialFeatures(degree=self.featurizer_degree, include_bias=True),
            cv=self.cv,
            random_state=self.random_state
        )

    def fit(self, outcomes: np.ndarray, treatments: np.ndarray,
            effect_modifiers: np.ndarray, controls: Optional[np.ndarray] = None) -> 'DMLEffectEstimator':
        """
        Fit nuisance models and the final effect model.

        Args:
            outcomes: (N, O) outcome matrix
            treatments: (N, T) treatment matrix
            effect_modifiers: (N, P) effect-modifier matrix
            controls: Optional (N, Q) control matrix

        Returns:
            The fitted estimator
        """
        outcomes = _as_column_matrix(outcomes)
        treatments = _as_column_matrix(treatments)
        self._n_outcomes = outcomes.shape[1]
        self._n_treatments = treatments.shape[1]

        self.model = self._build_model(self._n_outcomes, self._n_treatments)

        # econml keeps 1-D targets 1-D in its output; reshaped back in effect_at
        y = outcomes.ravel() if self._n_outcomes == 1 else outcomes
        t = treatments.ravel() if self._n_treatments == 1 else treatments
        self.model.fit(y, t, X=_as_column_matrix(effect_modifiers), W=controls)

        logger.debug(f"Fitted DML ({self.method}) with {self._n_outcomes} outcomes "
                     f"and {self._n_treatments} treatments on {len(outcomes)} rows")
        return self

    def effect_at(self, query_points: np.ndarray) -> np.ndarray:
        """
        Marginal effect at each query point.

        Args:
            query_points: (Q, P) effect-modifier values

        Returns:
            Effect tensor of shape (Q, O, T)
        """
        if self.model is None:
            raise RuntimeError("Estimator is not fitted. Call fit() first.")
        query_points = _as_column_matrix(query_points)
        effect = self.model.const_marginal_effect(query_points)
        return np.asarray(effect, dtype=float).reshape(len(query_points), self._n_outcomes, self._n_treatments)


class PLREffectEstimator:
    """
    Homogeneous (average) effects with doubleml's partially linear model.

    One DoubleMLPLR is fitted per outcome column; effect modifiers enter as extra
    controls, so the effect does not vary across query points.
    """

    def __init__(self, method: str = 'random_forest', n_folds: int = 3, random_state: int = 42):
        """
        Initialize the estimator.

        Args:
            method: Nuisance learner preset (see get_base_learners)
            n_folds: Number of folds for cross-fitting
            random_state: Random seed for reproducibility
        """
        self.method = method
        self.n_folds = n_folds
        self.random_state = random_state
        self.models = []
        self.coefficients = None

    def fit(self, outcomes: np.ndarray, treatments: np.ndarray,
            effect_modifiers: np.ndarray, controls: Optional[np.ndarray] = None) -> 'PLREffectEstimator':
        outcomes = _as_column_matrix(outcomes)
        treatments = _as_column_matrix(treatments)
        x = _as_column_matrix(effect_modifiers)
        if controls is not None:
            x = np.hstack([x, _as_column_matrix(controls)])

        d = treatments.ravel() if treatments.shape[1] == 1 else treatments
        learners = get_base_learners(self.method, self.random_state)

        self.models = []
        coefficients = []
        for j in range(outcomes.shape[1]):
            dml_data = dml.DoubleMLData.from_arrays(x, outcomes[:, j], d)
            dml_model = dml.DoubleMLPLR(
                dml_data,
                ml_l=clone(learners['model_y']),
                ml_m=clone(learners['model_t']),
                n_folds=self.n_folds
            )
            dml_model.fit()
            self.models.append(dml_model)
            coefficients.append(np.atleast_1d(dml_model.coef))
            logger.debug(f"PLR outcome {j}: coefficients {coefficients[-1]}")

        self.coefficients = np.vstack(coefficients)
        return self

    def effect_at(self, query_points: np.ndarray) -> np.ndarray:
        """Constant effect broadcast to shape (Q, O, T)."""
        if self.coefficients is None:
            raise RuntimeError("Estimator is not fitted. Call fit() first.")
        n_query = len(_as_column_matrix(query_points))
        return np.broadcast_to(self.coefficients, (n_query,) + self.coefficients.shape).copy()


def make_estimator_factory(kind: str = 'dml', **kwargs) -> EstimatorFactory:
    """
    Factory producing fresh, unfitted estimators for each bootstrap resample.

    Args:
        kind: 'dml' for DMLEffectEstimator or 'plr' for PLREffectEstimator
        **kwargs: Constructor arguments passed to the estimator

    Returns:
        Zero-argument callable returning a new estimator
    """
    estimators = {'dml': DMLEffectEstimator, 'plr': PLREffectEstimator}
    if kind not in estimators:
        raise ValueError(f"Unknown estimator kind {kind!r}; expected one of {sorted(estimators)}")
    estimator_cls = estimators[kind]

    def factory() -> EffectEstimator:
        return estimator_cls(**kwargs)

    return factory
