"""
Error Taxonomy
==============

Exceptions raised by the forecasting pipeline. All derive from
ForecastError so the CLI can report any pipeline failure uniformly.
"""


class ForecastError(Exception):
    """Base class for all pipeline errors."""


class LoadError(ForecastError):
    """Raised when the input file is missing or a row cannot be parsed."""


class DataOrderError(ForecastError):
    """Raised when duplicate (store, date) keys break the lag invariants."""


class InsufficientDataError(ForecastError):
    """Raised when a model is given fewer rows than it needs."""


class PredictionError(ForecastError):
    """Raised when a required feature is missing or null."""


class LengthMismatchError(ForecastError, ValueError):
    """Raised when actual and predicted sequences differ in length."""


class DivideByZeroError(ForecastError, ZeroDivisionError):
    """Raised when MAPE is requested over a zero actual value."""
