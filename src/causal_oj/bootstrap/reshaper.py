"""
Conversion between [Q, O, T] interval tensors and tidy tables.
"""

from collections import abc
from typing import List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from ..errors import SchemaMismatchError


Labels = Union[Sequence[str], Mapping[int, str]]

VALUE_COLUMNS = ['point_estimate', 'lower_bound', 'upper_bound']


def _resolve_labels(labels: Labels, size: int, dimension: str) -> List[str]:
    """Turn a label sequence or index->name mapping into a list of `size` names."""
    if len(labels) != size:
        raise SchemaMismatchError(
            f"Got {len(labels)} {dimension} labels but the {dimension} dimension has size {size}"
        )
    if isinstance(labels, abc.Mapping):
        missing = [i for i in range(size) if i not in labels]
        if missing:
            raise SchemaMismatchError(f"{dimension} label mapping has no entry for index(es) {missing}")
        return [labels[i] for i in range(size)]
    return list(labels)


def reshape_intervals(
    point: np.ndarray,
    lower: np.ndarray,
    upper: np.ndarray,
    query_points: np.ndarray,
    outcome_labels: Labels,
    treatment_labels: Labels,
    feature_names: Optional[Sequence[str]] = None
) -> pd.DataFrame:
    """
    Flatten point/lower/upper tensors into one row per (query point, outcome, treatment).

    Args:
        point: Point estimates, shape (Q, O, T)
        lower: Lower bounds, shape (Q, O, T)
        upper: Upper bounds, shape (Q, O, T)
        query_points: Effect-modifier values, shape (Q,) or (Q, P)
        outcome_labels: O outcome names, as a sequence or index->name mapping
        treatment_labels: T treatment names, as a sequence or index->name mapping
        feature_names: P column names for the query point features

    Returns:
        DataFrame with columns query_index, the feature columns, outcome, treatment,
        point_estimate, lower_bound and upper_bound, ordered by query point, then
        outcome, then treatment
    """
    point = np.asarray(point, dtype=float)
    lower = np.asarray(lower, dtype=float)
    upper = np.asarray(upper, dtype=float)

    if point.ndim != 3:
        raise SchemaMismatchError(f"Expected a [Q, O, T] tensor, got shape {point.shape}")
    if lower.shape != point.shape or upper.shape != point.shape:
        raise SchemaMismatchError(
            f"Tensor shapes differ: point {point.shape}, lower {lower.shape}, upper {upper.shape}"
        )
    n_query, n_outcomes, n_treatments = point.shape

    query_points = np.asarray(query_points, dtype=float)
    if query_points.ndim == 1:
        query_points = query_points.reshape(-1, 1)
    if len(query_points) != n_query:
        raise SchemaMismatchError(
            f"Got {len(query_points)} query points but the query dimension has size {n_query}"
        )

    outcomes = _resolve_labels(outcome_labels, n_outcomes, 'outcome')
    treatments = _resolve_labels(treatment_labels, n_treatments, 'treatment')

    if not feature_names:
        feature_names = [f"x{j}" for j in range(query_points.shape[1])]
    if len(feature_names) != query_points.shape[1]:
        raise SchemaMismatchError(
            f"Got {len(feature_names)} feature names for {query_points.shape[1]} query point features"
        )

    q_idx, o_idx, t_idx = (
        grid.ravel() for grid in np.meshgrid(
            np.arange(n_query), np.arange(n_outcomes), np.arange(n_treatments), indexing='ij'
        )
    )

    table = {'query_index': q_idx}
    for j, name in enumerate(feature_names):
        table[name] = query_points[q_idx, j]
    table['outcome'] = np.asarray(outcomes, dtype=object)[o_idx]
    table['treatment'] = np.asarray(treatments, dtype=object)[t_idx]
    table['point_estimate'] = point.ravel()
    table['lower_bound'] = lower.ravel()
    table['upper_bound'] = upper.ravel()

    return pd.DataFrame(table)


def pivot_intervals(
    table: pd.DataFrame,
    outcome_labels: Labels,
    treatment_labels: Labels
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Rebuild the (point, lower, upper) tensors from a table made by reshape_intervals.

    Args:
        table: Tidy interval table
        outcome_labels: Outcome names in tensor order
        treatment_labels: Treatment names in tensor order

    Returns:
        Tuple of (point, lower, upper) tensors, shape (Q, O, T)
    """
    required = ['query_index', 'outcome', 'treatment'] + VALUE_COLUMNS
    missing = [col for col in required if col not in table.columns]
    if missing:
        raise SchemaMismatchError(
            f"Interval table is missing column(s): {', '.join(missing)}", missing_columns=missing
        )

    outcomes = _resolve_labels(outcome_labels, len(outcome_labels), 'outcome')
    treatments = _resolve_labels(treatment_labels, len(treatment_labels), 'treatment')
    outcome_index = {label: i for i, label in enumerate(outcomes)}
    treatment_index = {label: i for i, label in enumerate(treatments)}

    unknown = sorted(set(table['outcome']) - set(outcome_index)) + \
        sorted(set(table['treatment']) - set(treatment_index))
    if unknown:
        raise SchemaMismatchError(f"Interval table has unknown label(s): {unknown}")

    n_query = int(table['query_index'].max()) + 1 if len(table) else 0
    shape = (n_query, len(outcomes), len(treatments))
    if len(table) != int(np.prod(shape)):
        raise SchemaMismatchError(f"Interval table has {len(table)} rows, expected {int(np.prod(shape))} for {shape}")

    q = table['query_index'].to_numpy(dtype=int)
    o = table['outcome'].map(outcome_index).to_numpy(dtype=int)
    t = table['treatment'].map(treatment_index).to_numpy(dtype=int)

    tensors = []
    for column in VALUE_COLUMNS:
        tensor = np.full(shape, np.nan)
        tensor[q, o, t] = table[column].to_numpy(dtype=float)
        tensors.append(tensor)

    return tensors[0], tensors[1], tensors[2]
