"""
Price elasticity of orange-juice demand with bootstrap confidence intervals.

This package estimates heterogeneous own-price and cross-price elasticities on the
Dominick's orange-juice dataset using Double Machine Learning, and attaches bootstrap
percentile intervals to the elasticity curve evaluated over a grid of store incomes.
"""

__version__ = "1.0.0"
__author__ = "Data Science Research"
