"""
Observation set container shared by the estimators and the bootstrap.
"""

from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from ..errors import SchemaMismatchError


def _as_matrix(values, name: str) -> np.ndarray:
    array = np.asarray(values, dtype=float)
    if array.ndim == 1:
        array = array.reshape(-1, 1)
    if array.ndim != 2:
        raise SchemaMismatchError(f"{name} must be one- or two-dimensional, got shape {array.shape}")
    return array


def _default_labels(prefix: str, n: int) -> List[str]:
    return [f"{prefix}_{i}" for i in range(n)]


@dataclass(frozen=True)
class ObservationSet:
    """
    Outcomes, treatments, effect modifiers and controls for N records.

    Every array is stored as a 2-D matrix with one row per record. Arrays are
    copied and made read-only on construction so a set can be shared across
    parallel fits.
    """
    outcomes: np.ndarray
    treatments: np.ndarray
    effect_modifiers: np.ndarray
    controls: Optional[np.ndarray] = None
    outcome_names: List[str] = field(default_factory=list)
    treatment_names: List[str] = field(default_factory=list)
    modifier_names: List[str] = field(default_factory=list)
    control_names: List[str] = field(default_factory=list)

    def __post_init__(self):
        arrays = {
            'outcomes': _as_matrix(self.outcomes, 'outcomes'),
            'treatments': _as_matrix(self.treatments, 'treatments'),
            'effect_modifiers': _as_matrix(self.effect_modifiers, 'effect_modifiers'),
        }
        if self.controls is not None:
            arrays['controls'] = _as_matrix(self.controls, 'controls')

        n_rows = {name: array.shape[0] for name, array in arrays.items()}
        if len(set(n_rows.values())) != 1:
            raise SchemaMismatchError(f"Row counts differ across arrays: {n_rows}")
        if n_rows['outcomes'] < 1:
            raise SchemaMismatchError("Observation set must contain at least one record")

        for name, array in arrays.items():
            array = array.copy()
            array.setflags(write=False)
            object.__setattr__(self, name, array)

        label_specs = [
            ('outcome_names', 'outcomes', 'outcome'),
            ('treatment_names', 'treatments', 'treatment'),
            ('modifier_names', 'effect_modifiers', 'modifier'),
            ('control_names', 'controls', 'control'),
        ]
        for label_attr, array_attr, prefix in label_specs:
            array = getattr(self, array_attr)
            width = 0 if array is None else array.shape[1]
            labels = list(getattr(self, label_attr))
            if not labels:
                labels = _default_labels(prefix, width)
            if len(labels) != width:
                raise SchemaMismatchError(
                    f"{label_attr} has {len(labels)} labels but {array_attr} has {width} columns"
                )
            object.__setattr__(self, label_attr, labels)

    def __len__(self) -> int:
        return self.outcomes.shape[0]

    @property
    def n_outcomes(self) -> int:
        return self.outcomes.shape[1]

    @property
    def n_treatments(self) -> int:
        return self.treatments.shape[1]

    def take(self, indices: np.ndarray) -> 'ObservationSet':
        """
        Select rows by index, applying the same index to every array.

        Args:
            indices: Integer row indices (repeats allowed)

        Returns:
            New observation set with len(indices) records
        """
        indices = np.asarray(indices, dtype=int)
        return ObservationSet(
            outcomes=self.outcomes[indices],
            treatments=self.treatments[indices],
            effect_modifiers=self.effect_modifiers[indices],
            controls=None if self.controls is None else self.controls[indices],
            outcome_names=self.outcome_names,
            treatment_names=self.treatment_names,
            modifier_names=self.modifier_names,
            control_names=self.control_names,
        )
