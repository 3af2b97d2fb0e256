"""
Exception Hierarchy

Errors raised by the search engine, storage layer and promotion gate.
"""


class GomokuZeroError(Exception):
    """Base class for all pipeline errors."""


class IllegalMoveError(GomokuZeroError, ValueError):
    """A stone was placed on an occupied or out-of-range cell."""


class EvaluatorUnavailableError(GomokuZeroError):
    """
    The position evaluator could not be loaded or failed during a query.

    Retryable: callers wait and reload rather than abort the process.
    """


class MalformedSampleError(GomokuZeroError):
    """A persisted replay unit is corrupt or has the wrong shape."""


class PromotionError(GomokuZeroError):
    """A champion swap could not be completed. The previous champion is intact."""
