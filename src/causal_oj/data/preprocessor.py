"""
Data preprocessing module for the price elasticity analysis.
"""

import pandas as pd
import numpy as np
from typing import Dict, List, Optional
import logging
from sklearn.preprocessing import StandardScaler

from .loader import DEMOGRAPHIC_COLUMNS
from .observations import ObservationSet
from ..errors import SchemaMismatchError


logger = logging.getLogger(__name__)


class OrangeJuicePreprocessor:
    """Turns the raw sales table into estimator-ready observation sets."""

    def __init__(self, effect_modifier: str = 'INCOME', brands: Optional[List[str]] = None):
        """
        Initialize the preprocessor.

        Args:
            effect_modifier: Column along which elasticity heterogeneity is estimated
            brands: Brand order for the cross-price analysis (default: sorted brands in data)
        """
        self.effect_modifier = effect_modifier
        self.brands = brands
        self.demographic_columns = [col for col in DEMOGRAPHIC_COLUMNS if col != effect_modifier]
        self.scaler = StandardScaler()

    def preprocess(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Apply log transforms, brand encoding and covariate normalization.

        Args:
            df: Raw orange-juice dataset

        Returns:
            Preprocessed dataset with 'log_price', 'brand_*' dummies and standardized
            demographic columns
        """
        logger.info("Starting data preprocessing")
        df_processed = df.copy()

        if (df_processed['price'] <= 0).any():
            n_bad = int((df_processed['price'] <= 0).sum())
            raise ValueError(f"Cannot take log of non-positive price in {n_bad} rows")

        df_processed['log_price'] = np.log(df_processed['price'])
        df_processed['brand'] = df_processed['brand'].astype(str)

        if self.brands is None:
            self.brands = sorted(df_processed['brand'].unique())

        # Normalize store demographics
        present = [col for col in self.demographic_columns if col in df_processed.columns]
        if present:
            df_processed[present] = self.scaler.fit_transform(df_processed[present].astype(float))
        self.demographic_columns = present

        # One-hot encode brand, keeping the original column for pivoting
        brand_dummies = pd.get_dummies(df_processed['brand'], prefix='brand', dtype=int)
        df_processed = pd.concat([df_processed, brand_dummies], axis=1)

        logger.info(f"Preprocessing complete. Final dataset shape: {df_processed.shape}")
        return df_processed

    def build_own_price_observations(self, df: pd.DataFrame) -> ObservationSet:
        """
        Single-outcome, single-treatment design: log quantity on log price.

        Args:
            df: Preprocessed dataset

        Returns:
            Observation set with logmove as outcome and log_price as treatment
        """
        control_cols = ['feat'] + [col for col in df.columns if col.startswith('brand_')]
        control_cols += self.demographic_columns
        control_cols = [col for col in control_cols if col in df.columns]

        logger.info(f"Own-price design: {len(df)} rows, {len(control_cols)} controls")

        return ObservationSet(
            outcomes=df[['logmove']].to_numpy(),
            treatments=df[['log_price']].to_numpy(),
            effect_modifiers=df[[self.effect_modifier]].to_numpy(),
            controls=df[control_cols].to_numpy(dtype=float),
            outcome_names=['logmove'],
            treatment_names=['log_price'],
            modifier_names=[self.effect_modifier],
            control_names=control_cols,
        )

    def pivot_by_brand(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Reshape to one row per (store, week) with one column per brand.

        Store-weeks that do not carry every brand are dropped.

        Args:
            df: Preprocessed dataset

        Returns:
            Wide table with 'logmove_<brand>', 'log_price_<brand>' and 'feat_<brand>'
            columns plus the store-level covariates
        """
        if df.duplicated(subset=['store', 'week', 'brand']).any():
            raise SchemaMismatchError("Dataset has duplicate (store, week, brand) rows")

        wide = df.pivot(index=['store', 'week'], columns='brand', values=['logmove', 'log_price', 'feat'])
        wide.columns = [f"{value}_{brand}" for value, brand in wide.columns]

        store_cols = [self.effect_modifier] + self.demographic_columns
        store_level = df.groupby(['store', 'week'])[store_cols].first()

        wide = wide.join(store_level)
        n_before = len(wide)
        wide = wide.dropna().reset_index()
        if len(wide) < n_before:
            logger.info(f"Dropped {n_before - len(wide)} store-weeks missing at least one brand")

        return wide

    def build_cross_price_observations(self, df: pd.DataFrame) -> ObservationSet:
        """
        Multi-outcome, multi-treatment design: every brand's demand on every brand's price.

        Args:
            df: Preprocessed dataset

        Returns:
            Observation set with one outcome and one treatment per brand
        """
        wide = self.pivot_by_brand(df)

        outcome_cols = [f"logmove_{brand}" for brand in self.brands]
        treatment_cols = [f"log_price_{brand}" for brand in self.brands]
        control_cols = [f"feat_{brand}" for brand in self.brands] + self.demographic_columns

        missing = [col for col in outcome_cols + treatment_cols if col not in wide.columns]
        if missing:
            raise SchemaMismatchError(
                f"Pivoted data is missing brand column(s): {', '.join(missing)}",
                missing_columns=missing
            )

        logger.info(
            f"Cross-price design: {len(wide)} store-weeks, {len(self.brands)} brands, "
            f"{len(control_cols)} controls"
        )

        return ObservationSet(
            outcomes=wide[outcome_cols].to_numpy(dtype=float),
            treatments=wide[treatment_cols].to_numpy(dtype=float),
            effect_modifiers=wide[[self.effect_modifier]].to_numpy(dtype=float),
            controls=wide[control_cols].to_numpy(dtype=float),
            outcome_names=outcome_cols,
            treatment_names=treatment_cols,
            modifier_names=[self.effect_modifier],
            control_names=control_cols,
        )

    def get_feature_groups(self, df: pd.DataFrame) -> Dict[str, List[str]]:
        """
        Categorize features into groups for analysis.

        Args:
            df: Preprocessed dataset

        Returns:
            Dictionary mapping feature group names to column lists
        """
        return {
            'outcome': ['logmove'],
            'treatment': ['log_price'],
            'effect_modifier': [self.effect_modifier],
            'brand': [col for col in df.columns if col.startswith('brand_')],
            'promotion': ['feat'],
            'demographics': list(self.demographic_columns),
        }
