"""
Exceptions raised by the elasticity pipeline.
"""

from typing import Optional, Sequence


class CausalOJError(Exception):
    """Base class for all pipeline errors."""


class DegenerateResampleError(CausalOJError):
    """A single bootstrap resample could not be fitted."""

    def __init__(self, resample_index: int, reason: str):
        self.resample_index = resample_index
        self.reason = reason
        super().__init__(f"Bootstrap resample {resample_index} failed to fit: {reason}")


class InsufficientSuccessfulResamplesError(CausalOJError):
    """Too few bootstrap resamples succeeded to form an interval."""

    def __init__(self, n_succeeded: int, n_failed: int, message: Optional[str] = None):
        self.n_succeeded = n_succeeded
        self.n_failed = n_failed
        if message is None:
            message = (
                f"Only {n_succeeded} bootstrap resamples succeeded ({n_failed} failed); "
                f"at least 2 are required to form an interval"
            )
        super().__init__(message)


class SchemaMismatchError(CausalOJError, ValueError):
    """Input columns or labels do not match what the computation expects."""

    def __init__(self, message: str, missing_columns: Optional[Sequence[str]] = None):
        self.missing_columns = list(missing_columns) if missing_columns else []
        super().__init__(message)


class InvalidPercentileRangeError(CausalOJError, ValueError):
    """Percentile ranks are outside [0, 100] or not strictly increasing."""

    def __init__(self, parameter: str, lower: float, upper: float):
        self.parameter = parameter
        self.lower = lower
        self.upper = upper
        super().__init__(
            f"Invalid {parameter}: lower_percentile={lower}, upper_percentile={upper}; "
            f"expected 0 <= lower_percentile < upper_percentile <= 100"
        )
