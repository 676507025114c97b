"""
Visualization module for elasticity curves and their bootstrap intervals.
"""

import matplotlib.pyplot as plt
import seaborn as sns
import plotly.graph_objects as go
import pandas as pd
import numpy as np
from typing import List, Optional, Tuple
import logging


logger = logging.getLogger(__name__)


class ElasticityVisualization:
    """Plots elasticity curves with bootstrap confidence bands."""

    def __init__(self, figsize: Tuple[int, int] = (10, 6), show: bool = True):
        """
        Initialize visualization settings.

        Args:
            figsize: Default figure size
            show: Whether to call plt.show() after drawing
        """
        plt.style.use('default')
        sns.set_palette("husl")
        self.figsize = figsize
        self.show = show
        self.colors = {
            'primary': '#2E86AB',
            'secondary': '#A23B72',
            'accent': '#F18F01',
            'neutral': '#C73E1D',
            'light_gray': '#F5F5F5',
            'dark_gray': '#333333'
        }

    def _finish(self, fig: plt.Figure, save_path: Optional[str], name: str) -> plt.Figure:
        plt.tight_layout()

        if save_path:
            fig.savefig(save_path, dpi=300, bbox_inches='tight')
            logger.info(f"{name} saved to {save_path}")

        if self.show:
            plt.show()
        return fig

    def _draw_band(self, ax: plt.Axes, curve: pd.DataFrame, feature: str, color: str) -> None:
        curve = curve.sort_values(feature)
        ax.fill_between(curve[feature], curve['lower_bound'], curve['upper_bound'],
                        color=color, alpha=0.25, label='Bootstrap interval')
        ax.plot(curve[feature], curve['point_estimate'], color=color, linewidth=2,
                label='Point estimate')

    def plot_elasticity_curve(
        self,
        table: pd.DataFrame,
        feature: str,
        outcome: Optional[str] = None,
        treatment: Optional[str] = None,
        baseline: Optional[float] = None,
        save_path: Optional[str] = None
    ) -> plt.Figure:
        """
        Plot one elasticity curve against the effect modifier.

        Args:
            table: Tidy interval table
            feature: Query point column used as x-axis
            outcome: Outcome to plot (default: first in table)
            treatment: Treatment to plot (default: first in table)
            baseline: Optional homogeneous elasticity drawn as a horizontal line
            save_path: Path to save the figure

        Returns:
            The matplotlib figure
        """
        outcome = outcome if outcome is not None else table['outcome'].iloc[0]
        treatment = treatment if treatment is not None else table['treatment'].iloc[0]
        curve = table[(table['outcome'] == outcome) & (table['treatment'] == treatment)]
        if curve.empty:
            raise ValueError(f"No rows for outcome={outcome!r}, treatment={treatment!r}")

        fig, ax = plt.subplots(figsize=self.figsize)
        self._draw_band(ax, curve, feature, self.colors['primary'])

        if baseline is not None:
            ax.axhline(y=baseline, color=self.colors['neutral'], linestyle='--', alpha=0.7,
                       label='Average elasticity')

        ax.set_xlabel(feature)
        ax.set_ylabel('Elasticity')
        ax.set_title(f'Price Elasticity of {outcome} w.r.t. {treatment}', fontweight='bold')
        ax.legend()
        ax.grid(True, alpha=0.3)

        return self._finish(fig, save_path, "Elasticity curve")

    def plot_cross_elasticity_grid(
        self,
        table: pd.DataFrame,
        feature: str,
        outcomes: Optional[List[str]] = None,
        treatments: Optional[List[str]] = None,
        save_path: Optional[str] = None
    ) -> plt.Figure:
        """
        Grid of elasticity curves, one panel per (outcome, treatment) pair.

        Rows are outcomes (demand of each brand), columns are treatments (price of
        each brand); diagonal panels are own-price elasticities.

        Args:
            table: Tidy interval table
            feature: Query point column used as x-axis
            outcomes: Row order (default: order of appearance)
            treatments: Column order (default: order of appearance)
            save_path: Path to save the figure

        Returns:
            The matplotlib figure
        """
        outcomes = outcomes or list(pd.unique(table['outcome']))
        treatments = treatments or list(pd.unique(table['treatment']))
        n_rows, n_cols = len(outcomes), len(treatments)

        fig, axes = plt.subplots(n_rows, n_cols, figsize=(4 * n_cols, 3.5 * n_rows),
                                 sharex=True, squeeze=False)
        fig.suptitle('Own- and Cross-Price Elasticities', fontsize=16, fontweight='bold')

        for i, outcome in enumerate(outcomes):
            for j, treatment in enumerate(treatments):
                ax = axes[i, j]
                curve = table[(table['outcome'] == outcome) & (table['treatment'] == treatment)]
                color = self.colors['secondary'] if i == j else self.colors['primary']
                self._draw_band(ax, curve, feature, color)
                ax.axhline(y=0, color=self.colors['dark_gray'], linestyle=':', alpha=0.5)
                ax.set_title(f'{outcome} / {treatment}', fontsize=10)
                ax.grid(True, alpha=0.3)
                if i == n_rows - 1:
                    ax.set_xlabel(feature)

        return self._finish(fig, save_path, "Cross-elasticity grid")

    def plot_interactive_curve(
        self,
        table: pd.DataFrame,
        feature: str,
        outcome: Optional[str] = None,
        treatment: Optional[str] = None,
        save_path: Optional[str] = None
    ) -> go.Figure:
        """
        Interactive plotly version of the elasticity curve.

        Args:
            table: Tidy interval table
            feature: Query point column used as x-axis
            outcome: Outcome to plot (default: first in table)
            treatment: Treatment to plot (default: first in table)
            save_path: Optional .html path

        Returns:
            The plotly figure
        """
        outcome = outcome if outcome is not None else table['outcome'].iloc[0]
        treatment = treatment if treatment is not None else table['treatment'].iloc[0]
        curve = table[(table['outcome'] == outcome) & (table['treatment'] == treatment)]
        curve = curve.sort_values(feature)

        fig = go.Figure()
        fig.add_trace(go.Scatter(
            x=np.concatenate([curve[feature], curve[feature][::-1]]),
            y=np.concatenate([curve['upper_bound'], curve['lower_bound'][::-1]]),
            fill='toself', fillcolor='rgba(46, 134, 171, 0.25)',
            line=dict(color='rgba(255, 255, 255, 0)'),
            hoverinfo='skip', name='Bootstrap interval'
        ))
        fig.add_trace(go.Scatter(
            x=curve[feature], y=curve['point_estimate'], mode='lines',
            line=dict(color=self.colors['primary'], width=2), name='Point estimate'
        ))
        fig.update_layout(
            title=f'Price Elasticity of {outcome} w.r.t. {treatment}',
            xaxis_title=feature, yaxis_title='Elasticity', template='plotly_white'
        )

        if save_path:
            fig.write_html(str(save_path))
            logger.info(f"Interactive elasticity curve saved to {save_path}")

        return fig

    def create_correlation_heatmap(
        self,
        df: pd.DataFrame,
        variables: List[str],
        save_path: Optional[str] = None
    ) -> plt.Figure:
        """
        Create correlation heatmap for selected variables.

        Args:
            df: Dataset
            variables: Variables to include in correlation matrix
            save_path: Path to save the figure
        """
        correlation_matrix = df[variables].corr()

        fig, ax = plt.subplots(figsize=(10, 8))

        sns.heatmap(correlation_matrix, annot=True, cmap='coolwarm', center=0,
                    square=True, fmt='.2f', cbar_kws={'shrink': 0.8}, ax=ax)

        ax.set_title('Correlation Matrix of Key Variables', fontweight='bold')

        return self._finish(fig, save_path, "Correlation heatmap")
