"""
Unit tests for the treatment-effect estimator adapters.
"""

import unittest
import numpy as np
from unittest.mock import Mock, patch
import sys
from pathlib import Path

# Add src to path
sys.path.append(str(Path(__file__).parent.parent / "src"))
sys.path.append(str(Path(__file__).parent))

from sklearn.ensemble import RandomForestRegressor
from sklearn.linear_model import ElasticNetCV
from sklearn.multioutput import MultiOutputRegressor
from xgboost import XGBRegressor

from causal_oj.models.estimators import (
    DMLEffectEstimator, PLREffectEstimator, collapse_effect, get_base_learners,
    make_estimator_factory, _for_targets
)
from synthetic import make_linear_observations


class TestBaseLearners(unittest.TestCase):
    """Test cases for nuisance learner presets."""

    def test_get_base_learners(self):
        """Every preset provides outcome and treatment models."""
        expected = {
            'random_forest': RandomForestRegressor,
            'elastic_net': ElasticNetCV,
            'xgboost': XGBRegressor,
        }
        for method, model_cls in expected.items():
            learners = get_base_learners(method, random_state=1)
            self.assertIn('model_y', learners)
            self.assertIn('model_t', learners)
            self.assertIsInstance(learners['model_y'], model_cls)
            self.assertIsNot(learners['model_y'], learners['model_t'])

    def test_unknown_method(self):
        with self.assertRaises(ValueError):
            get_base_learners('logistic')

    def test_multi_target_wrapping(self):
        """Single-target regressors are wrapped only when there are several targets."""
        elastic_net = get_base_learners('elastic_net')['model_t']
        self.assertIs(_for_targets(elastic_net, 1), elastic_net)
        self.assertIsInstance(_for_targets(elastic_net, 3), MultiOutputRegressor)

        forest = get_base_learners('random_forest')['model_t']
        self.assertIs(_for_targets(forest, 3), forest)


class TestCollapseEffect(unittest.TestCase):
    """Test cases for collapse_effect."""

    def test_shapes(self):
        self.assertEqual(collapse_effect(np.zeros((5, 1, 1))).shape, (5,))
        self.assertEqual(collapse_effect(np.zeros((5, 1, 3))).shape, (5, 3))
        self.assertEqual(collapse_effect(np.zeros((5, 3, 3))).shape, (5, 3, 3))
        self.assertEqual(collapse_effect(np.zeros((1, 1, 1))).shape, (1,))


class TestDMLEffectEstimator(unittest.TestCase):
    """Test cases for DMLEffectEstimator."""

    def setUp(self):
        """Set up test fixtures."""
        self.outcomes, self.treatments, self.modifiers, self.controls = make_linear_observations(n=100)
        self.query_points = np.array([[0.1], [0.5], [0.9]])

    def test_effect_before_fit(self):
        with self.assertRaises(RuntimeError):
            DMLEffectEstimator().effect_at(self.query_points)

    @patch('causal_oj.models.estimators.DML')
    def test_single_outcome_single_treatment(self, mock_dml):
        """1-D econml output is returned as [Q, 1, 1]."""
        mock_model = Mock()
        mock_model.const_marginal_effect.return_value = np.array([-1.5, -1.0, -0.5])
        mock_dml.return_value = mock_model

        estimator = DMLEffectEstimator(method='elastic_net').fit(
            self.outcomes, self.treatments, self.modifiers, self.controls
        )
        effect = estimator.effect_at(self.query_points)

        self.assertEqual(effect.shape, (3, 1, 1))
        np.testing.assert_allclose(effect[:, 0, 0], [-1.5, -1.0, -0.5])

        # Single targets are passed to econml as 1-D vectors
        args, kwargs = mock_model.fit.call_args
        self.assertEqual(args[0].ndim, 1)
        self.assertEqual(args[1].ndim, 1)
        self.assertEqual(kwargs['X'].shape, (100, 1))
        self.assertEqual(kwargs['W'].shape, (100, 2))

    @patch('causal_oj.models.estimators.DML')
    def test_multi_outcome_multi_treatment(self, mock_dml):
        """Cross effects keep their [Q, O, T] layout."""
        outcomes, treatments, modifiers, controls = make_linear_observations(n=100, n_outcomes=3, n_treatments=3)
        cross = np.arange(27, dtype=float).reshape(3, 3, 3)
        mock_model = Mock()
        mock_model.const_marginal_effect.return_value = cross
        mock_dml.return_value = mock_model

        estimator = DMLEffectEstimator().fit(outcomes, treatments, modifiers, controls)
        effect = estimator.effect_at(self.query_points)

        np.testing.assert_array_equal(effect, cross)
        args, _ = mock_model.fit.call_args
        self.assertEqual(args[0].shape, (100, 3))
        self.assertEqual(args[1].shape, (100, 3))

    def test_fit_on_linear_data(self):
        """A real fit recovers a linear heterogeneous effect roughly."""
        rng = np.random.RandomState(0)
        n = 600
        x = rng.uniform(0, 1, size=(n, 1))
        w = rng.normal(size=(n, 3))
        t = w @ np.array([0.5, -0.3, 0.2]) + rng.normal(scale=1.0, size=n)
        theta = -1.0 + 0.5 * x[:, 0]
        y = theta * t + w @ np.array([1.0, 0.5, -0.5]) + rng.normal(scale=0.3, size=n)

        estimator = DMLEffectEstimator(method='elastic_net', featurizer_degree=1, random_state=0)
        estimator.fit(y, t, x, w)
        effect = estimator.effect_at(self.query_points)

        self.assertEqual(effect.shape, (3, 1, 1))
        self.assertTrue(np.all(np.isfinite(effect)))
        np.testing.assert_allclose(effect[:, 0, 0], -1.0 + 0.5 * self.query_points[:, 0], atol=0.3)

    def test_fit_cross_design(self):
        """A real three-outcome, three-treatment fit returns every own and cross effect."""
        outcomes, treatments, modifiers, controls = make_linear_observations(
            n=400, n_outcomes=3, n_treatments=3, seed=5
        )
        # make_linear_observations uses Y = T @ B, so effect[q, o, t] = B[t, o]
        slopes = -1.0 - 0.5 * np.arange(9).reshape(3, 3)

        estimator = DMLEffectEstimator(method='elastic_net', featurizer_degree=1, cv=2, random_state=0)
        estimator.fit(outcomes, treatments, modifiers, controls)
        effect = estimator.effect_at(self.query_points)

        self.assertEqual(effect.shape, (3, 3, 3))
        self.assertTrue(np.all(np.isfinite(effect)))
        np.testing.assert_allclose(effect.mean(axis=0), slopes.T, atol=0.5)


class TestPLREffectEstimator(unittest.TestCase):
    """Test cases for PLREffectEstimator."""

    def setUp(self):
        """Set up test fixtures."""
        self.query_points = np.array([[10.0], [10.5]])

    def test_effect_before_fit(self):
        with self.assertRaises(RuntimeError):
            PLREffectEstimator().effect_at(self.query_points)

    @patch('causal_oj.models.estimators.dml')
    def test_constant_effect_per_outcome(self, mock_dml):
        """One PLR model per outcome; the effect is flat across query points."""
        outcomes, treatments, modifiers, controls = make_linear_observations(n=80, n_outcomes=2, n_treatments=3)
        fitted = [Mock(coef=np.array([-2.0, 0.5, 0.1])), Mock(coef=np.array([0.3, -1.8, 0.2]))]
        mock_dml.DoubleMLPLR.side_effect = fitted

        estimator = PLREffectEstimator(n_folds=2).fit(outcomes, treatments, modifiers, controls)
        effect = estimator.effect_at(self.query_points)

        self.assertEqual(mock_dml.DoubleMLPLR.call_count, 2)
        self.assertEqual(mock_dml.DoubleMLData.from_arrays.call_count, 2)
        for model in fitted:
            model.fit.assert_called_once()

        self.assertEqual(effect.shape, (2, 2, 3))
        np.testing.assert_allclose(effect[0], effect[1])
        np.testing.assert_allclose(effect[0, 1], [0.3, -1.8, 0.2])

        # Effect modifiers and controls both enter as covariates
        x_arg = mock_dml.DoubleMLData.from_arrays.call_args_list[0][0][0]
        self.assertEqual(x_arg.shape, (80, 3))


class TestEstimatorFactory(unittest.TestCase):
    """Test cases for make_estimator_factory."""

    def test_fresh_instances(self):
        factory = make_estimator_factory('dml', method='xgboost', cv=2)
        first, second = factory(), factory()
        self.assertIsInstance(first, DMLEffectEstimator)
        self.assertIsNot(first, second)
        self.assertEqual(first.method, 'xgboost')
        self.assertEqual(first.cv, 2)

        self.assertIsInstance(make_estimator_factory('plr')(), PLREffectEstimator)

    def test_unknown_kind(self):
        with self.assertRaises(ValueError):
            make_estimator_factory('causal_forest')


if __name__ == '__main__':
    unittest.main()
