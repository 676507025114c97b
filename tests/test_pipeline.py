"""
End-to-end test of the analysis script on a small synthetic dataset.
"""

import unittest
import tempfile
import json
import pandas as pd
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
from unittest.mock import patch
import sys
from pathlib import Path

# Add project root, src and tests to path
sys.path.append(str(Path(__file__).parent.parent))
sys.path.append(str(Path(__file__).parent.parent / "src"))
sys.path.append(str(Path(__file__).parent))

import main_analysis
from synthetic import SlopeEstimator, make_oj_frame


def fake_factory(kind='dml', **kwargs):
    return SlopeEstimator


class TestMainAnalysis(unittest.TestCase):
    """Runs main_analysis.main with cheap estimators."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.out_dir = Path(self.tmp.name)
        self.data_path = self.out_dir / "oj.csv"
        make_oj_frame(n_stores=6, n_weeks=8, seed=1).to_csv(self.data_path, index=False)

    def tearDown(self):
        plt.close('all')
        self.tmp.cleanup()

    def run_main(self, *extra):
        argv = ['--data', str(self.data_path), '--output-dir', str(self.out_dir),
                '--resample-count', '5', '--log-level', 'WARNING'] + list(extra)
        with patch('main_analysis.make_estimator_factory', side_effect=fake_factory):
            return main_analysis.main(argv)

    def test_full_run(self):
        exit_code = self.run_main('--query-min', '10.0', '--query-max', '10.5')
        self.assertEqual(exit_code, 0)

        results_dir = self.out_dir / "results"
        figures_dir = self.out_dir / "figures"

        own = pd.read_csv(results_dir / "own_price_intervals.csv")
        self.assertEqual(len(own), 6)
        self.assertTrue((own['lower_bound'] <= own['upper_bound']).all())

        cross = pd.read_csv(results_dir / "cross_price_intervals.csv")
        self.assertEqual(len(cross), 6 * 3 * 3)
        self.assertIn('INCOME', cross.columns)

        with open(results_dir / "elasticity_results.json") as f:
            results = json.load(f)
        self.assertEqual(results['config']['resample_count'], 5)
        self.assertEqual(results['own_price']['bootstrap']['n_succeeded'], 5)
        self.assertIn('average_elasticity', results['own_price'])
        self.assertEqual(len(results['own_price']['elasticity_curve']), 6)

        for name in ["own_price_elasticity.png", "own_price_elasticity.html",
                     "cross_price_elasticities.png", "correlation_matrix.png"]:
            self.assertTrue((figures_dir / name).exists(), name)

    def test_invalid_percentiles_exit_code(self):
        exit_code = self.run_main('--lower-percentile', '90', '--upper-percentile', '10')
        self.assertEqual(exit_code, 1)

    def test_invalid_resample_count_exit_code(self):
        self.assertEqual(self.run_main('--resample-count', '0'), 1)

    def test_non_positive_price_exit_code(self):
        frame = make_oj_frame()
        frame.loc[0, 'price'] = 0.0
        frame.to_csv(self.data_path, index=False)
        self.assertEqual(self.run_main('--analysis', 'own'), 1)

    def test_half_query_range_is_rejected(self):
        for flags in (['--query-min', '10.2'], ['--query-max', '10.8']):
            with self.subTest(flags=flags):
                with self.assertRaises(SystemExit):
                    main_analysis.parse_args(flags)

    def test_missing_columns_exit_code(self):
        make_oj_frame().drop(columns=['price']).to_csv(self.data_path, index=False)
        self.assertEqual(self.run_main('--analysis', 'own'), 1)

    def test_build_config_overrides(self):
        config_path = self.out_dir / "bootstrap.json"
        with open(config_path, 'w') as f:
            json.dump({'resample_count': 40, 'correction': 'bonferroni'}, f)

        args = main_analysis.parse_args(['--config', str(config_path), '--resample-count', '8',
                                         '--query-min', '10', '--query-max', '11'])
        config = main_analysis.build_config(args)

        self.assertEqual(config.resample_count, 8)
        self.assertEqual(config.correction, 'bonferroni')
        self.assertEqual(config.query_points, {'min': 10.0, 'max': 11.0, 'step': 0.1})


if __name__ == '__main__':
    unittest.main()
