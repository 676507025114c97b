"""
Main analysis script for the price elasticity of orange-juice demand.

This script estimates heterogeneous own-price and cross-price elasticities with
Double Machine Learning and attaches bootstrap percentile intervals to the
elasticity curves over a grid of store incomes.
"""

import sys
import argparse
from pathlib import Path
import logging

# Add src to path for imports
sys.path.append(str(Path(__file__).parent / "src"))

from causal_oj.config import BootstrapConfig
from causal_oj.data.loader import OrangeJuiceDataLoader, OJ_DATA_URL
from causal_oj.data.preprocessor import OrangeJuicePreprocessor
from causal_oj.errors import CausalOJError
from causal_oj.models.estimators import collapse_effect, make_estimator_factory
from causal_oj.bootstrap.inference import BootstrapInference
from causal_oj.visualization.plots import ElasticityVisualization
from causal_oj.utils.helpers import (
    setup_logging, save_results, format_interval_table, ensure_directory
)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Orange-juice price elasticity with bootstrap intervals")
    parser.add_argument("--data", default=OJ_DATA_URL, help="CSV path or URL of the dataset")
    parser.add_argument("--config", help="JSON file with bootstrap options")
    parser.add_argument("--resample-count", type=int, help="Number of bootstrap resamples")
    parser.add_argument("--lower-percentile", type=float, help="Lower percentile rank")
    parser.add_argument("--upper-percentile", type=float, help="Upper percentile rank")
    parser.add_argument("--query-min", type=float, help="Smallest income query point")
    parser.add_argument("--query-max", type=float, help="Largest income query point")
    parser.add_argument("--query-step", type=float, default=0.1, help="Income grid step")
    parser.add_argument("--correction", choices=["none", "bonferroni"], help="Simultaneous coverage correction")
    parser.add_argument("--n-jobs", type=int, help="Parallel workers for resample fits")
    parser.add_argument("--method", default="random_forest",
                        choices=["random_forest", "elastic_net", "xgboost"], help="Nuisance learners")
    parser.add_argument("--analysis", default="both", choices=["own", "cross", "both"])
    parser.add_argument("--output-dir", default=".", help="Directory for figures/ and results/")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)

    if (args.query_min is None) != (args.query_max is None):
        parser.error("--query-min and --query-max must be given together")
    return args


def build_config(args: argparse.Namespace) -> BootstrapConfig:
    """Merge the JSON config file (if any) with command-line overrides."""
    options = BootstrapConfig.from_json(args.config).to_dict() if args.config else {}

    overrides = {
        'resample_count': args.resample_count,
        'lower_percentile': args.lower_percentile,
        'upper_percentile': args.upper_percentile,
        'correction': args.correction,
        'n_jobs': args.n_jobs,
    }
    options.update({key: value for key, value in overrides.items() if value is not None})

    if args.query_min is not None and args.query_max is not None:
        options['query_points'] = {'min': args.query_min, 'max': args.query_max, 'step': args.query_step}

    return BootstrapConfig.from_dict(options)


def main(argv=None) -> int:
    """Run the complete elasticity analysis pipeline."""
    args = parse_args(argv)

    # Setup
    setup_logging(level=args.log_level)
    logger = logging.getLogger(__name__)

    output_dir = Path(args.output_dir)
    figures_dir = ensure_directory(output_dir / "figures")
    results_dir = ensure_directory(output_dir / "results")

    try:
        config = build_config(args)

        # Step 1: Load and preprocess data
        logger.info("Step 1: Loading and preprocessing data")
        loader = OrangeJuiceDataLoader(args.data)
        raw_data = loader.load_data()

        preprocessor = OrangeJuicePreprocessor()
        processed_data = preprocessor.preprocess(raw_data)

        visualizer = ElasticityVisualization(show=False)
        feature = preprocessor.effect_modifier
        visualizer.create_correlation_heatmap(
            processed_data, ['logmove', 'log_price', 'feat', feature] + preprocessor.demographic_columns[:4],
            save_path=figures_dir / "correlation_matrix.png"
        )

        results = {'config': config.to_dict()}
        dml_factory = make_estimator_factory('dml', method=args.method, random_state=config.random_state)

        # Step 2: Own-price elasticity
        if args.analysis in ("own", "both"):
            logger.info("Step 2: Own-price elasticity with bootstrap intervals")
            own = preprocessor.build_own_price_observations(processed_data)
            query_points = config.resolve_query_points(own.effect_modifiers)

            own_result = BootstrapInference(dml_factory, config).run(own, query_points)
            own_table = own_result.to_frame()
            own_table.to_csv(results_dir / "own_price_intervals.csv", index=False)

            own_curve = collapse_effect(own_result.point_estimate)
            logger.info(f"Own-price elasticity ranges from {own_curve.min():.4f} to {own_curve.max():.4f} "
                        f"over {len(own_curve)} income points")

            # Homogeneous baseline from the partially linear model
            baseline = make_estimator_factory('plr', method=args.method)()
            baseline.fit(own.outcomes, own.treatments, own.effect_modifiers, own.controls)
            average_elasticity = float(baseline.coefficients[0, 0])
            logger.info(f"Average own-price elasticity (PLR): {average_elasticity:.4f}")

            visualizer.plot_elasticity_curve(
                own_table, feature, baseline=average_elasticity,
                save_path=figures_dir / "own_price_elasticity.png"
            )
            visualizer.plot_interactive_curve(
                own_table, feature, save_path=figures_dir / "own_price_elasticity.html"
            )

            results['own_price'] = {
                'bootstrap': own_result.summary(),
                'elasticity_curve': own_curve,
                'average_elasticity': average_elasticity,
            }
            print(format_interval_table(own_table, feature, "Own-Price Elasticity"))

        # Step 3: Cross-price elasticities
        if args.analysis in ("cross", "both"):
            logger.info("Step 3: Cross-price elasticities with bootstrap intervals")
            cross = preprocessor.build_cross_price_observations(processed_data)
            query_points = config.resolve_query_points(cross.effect_modifiers)

            cross_result = BootstrapInference(dml_factory, config).run(cross, query_points)
            cross_table = cross_result.to_frame()
            cross_table.to_csv(results_dir / "cross_price_intervals.csv", index=False)

            visualizer.plot_cross_elasticity_grid(
                cross_table, feature, save_path=figures_dir / "cross_price_elasticities.png"
            )

            results['cross_price'] = {'bootstrap': cross_result.summary()}
            print(format_interval_table(cross_table, feature, "Cross-Price Elasticities", max_rows=4))

    except (CausalOJError, ValueError) as e:
        logger.error(f"Analysis failed: {e}")
        return 1

    # Step 4: Save results
    save_results(results, results_dir / "elasticity_results.json")

    logger.info("Analysis complete! Check the figures/ and results/ directories for outputs.")
    print(f"\nAnalysis complete! Outputs saved to:")
    print(f"- Figures: {figures_dir}")
    print(f"- Results: {results_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
