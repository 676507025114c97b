"""
Utility functions for the elasticity analysis.
"""

import pandas as pd
import numpy as np
import logging
from pathlib import Path
from typing import Dict, Any, Optional
import json
import pickle


logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Set up logging configuration.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file to write logs to
    """
    log_level = getattr(logging, level.upper())

    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def _to_serializable(value: Any) -> Any:
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, pd.DataFrame):
        return value.to_dict(orient='records')
    if isinstance(value, dict):
        return {str(k): _to_serializable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_serializable(v) for v in value]
    return value


def save_results(results: Dict[str, Any], filepath: str) -> None:
    """
    Save analysis results to file.

    Args:
        results: Dictionary containing analysis results
        filepath: Path to save results (.json or .pkl)
    """
    filepath = Path(filepath)

    if filepath.suffix == '.json':
        serializable_results = {}
        for key, value in results.items():
            value = _to_serializable(value)
            try:
                json.dumps(value)
                serializable_results[key] = value
            except (TypeError, ValueError):
                serializable_results[key] = str(value)

        with open(filepath, 'w') as f:
            json.dump(serializable_results, f, indent=2)

    elif filepath.suffix == '.pkl':
        with open(filepath, 'wb') as f:
            pickle.dump(results, f)

    else:
        raise ValueError(f"Unsupported file format: {filepath.suffix}")

    logger.info(f"Results saved to {filepath}")


def load_results(filepath: str) -> Dict[str, Any]:
    """
    Load analysis results from file.

    Args:
        filepath: Path to results file

    Returns:
        Dictionary containing analysis results
    """
    filepath = Path(filepath)

    if filepath.suffix == '.json':
        with open(filepath, 'r') as f:
            results = json.load(f)

    elif filepath.suffix == '.pkl':
        with open(filepath, 'rb') as f:
            results = pickle.load(f)

    else:
        raise ValueError(f"Unsupported file format: {filepath.suffix}")

    logger.info(f"Results loaded from {filepath}")
    return results


def format_interval_table(
    table: pd.DataFrame,
    feature: str,
    title: str = "Elasticity Estimates",
    max_rows: int = 12
) -> str:
    """
    Format an interval table for console reporting.

    Rows are thinned evenly to at most max_rows per (outcome, treatment) pair.

    Args:
        table: Tidy interval table from reshape_intervals
        feature: Query point column to show
        title: Title for the table
        max_rows: Maximum rows shown per (outcome, treatment) pair

    Returns:
        Formatted table string
    """
    table_lines = [f"\n{title}", "=" * len(title)]

    headers = [feature, "Outcome", "Treatment", "Estimate", "Lower", "Upper"]
    table_lines.append(" | ".join(f"{h:>14}" for h in headers))
    table_lines.append("-" * (15 * len(headers) + len(headers) - 1))

    for _, group in table.groupby(['outcome', 'treatment'], sort=False):
        step = max(1, int(np.ceil(len(group) / max_rows)))
        for _, row in group.iloc[::step].iterrows():
            cells = [
                f"{row[feature]:.3f}",
                str(row['outcome'])[:14],
                str(row['treatment'])[:14],
                f"{row['point_estimate']:.4f}",
                f"{row['lower_bound']:.4f}",
                f"{row['upper_bound']:.4f}",
            ]
            table_lines.append(" | ".join(f"{cell:>14}" for cell in cells))

    return "\n".join(table_lines)


def ensure_directory(path: str) -> Path:
    """
    Ensure directory exists, create if it doesn't.

    Args:
        path: Directory path

    Returns:
        Path object
    """
    path_obj = Path(path)
    path_obj.mkdir(parents=True, exist_ok=True)
    return path_obj
