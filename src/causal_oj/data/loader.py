"""
Data loading module for the Dominick's orange-juice dataset.
"""

import pandas as pd
from pathlib import Path
from typing import List, Optional, Union
import logging

from ..errors import SchemaMismatchError


logger = logging.getLogger(__name__)

OJ_DATA_URL = "https://msalicedatapublic.z5.web.core.windows.net/datasets/OJ/oj_large.csv"

KEY_COLUMNS = ['store', 'week', 'brand', 'logmove', 'price']

DEMOGRAPHIC_COLUMNS = [
    'AGE60', 'EDUC', 'ETHNIC', 'INCOME', 'HHLARGE', 'WORKWOM',
    'HVAL150', 'SSTRDIST', 'SSTRVOL', 'CPDIST5', 'CPWVOL5'
]


class OrangeJuiceDataLoader:
    """Loads and provides access to the store-level orange-juice sales dataset."""

    def __init__(
        self,
        source: Union[str, Path] = OJ_DATA_URL,
        covariate_columns: Optional[List[str]] = None
    ):
        """
        Initialize the data loader.

        Args:
            source: Local CSV path or URL of the dataset
            covariate_columns: Numeric covariates that must be present besides the key
                columns (default: feature flag and all store demographics)
        """
        self.source = source
        self.covariate_columns = (
            covariate_columns if covariate_columns is not None
            else ['feat'] + DEMOGRAPHIC_COLUMNS
        )
        self._raw_data = None

    @property
    def required_columns(self) -> List[str]:
        return KEY_COLUMNS + [col for col in self.covariate_columns if col not in KEY_COLUMNS]

    def load_data(self) -> pd.DataFrame:
        """
        Read the dataset and check that every required column is present.

        Returns:
            Raw dataset, one row per (store, week, brand)
        """
        logger.info(f"Loading orange-juice dataset from {self.source}")

        df = pd.read_csv(self.source)
        self.validate_columns(df)

        self._raw_data = df
        logger.info(f"Loaded dataset with {len(df)} observations and {len(df.columns)} columns")

        return df

    def validate_columns(self, df: pd.DataFrame) -> None:
        """Raise SchemaMismatchError naming every required column missing from df."""
        missing = [col for col in self.required_columns if col not in df.columns]
        if missing:
            raise SchemaMismatchError(
                f"Dataset is missing required column(s): {', '.join(missing)}",
                missing_columns=missing
            )
