"""
Stock engine error taxonomy.

Store implementations raise these; the decrement engine catches them,
turns them into messages and keeps going with the next unit of work.
"""


class StockError(Exception):
    """Base class for recoverable stock store failures."""


class LookupFailure(StockError):
    """A referenced product or raw material does not exist."""


class PersistenceFailure(StockError):
    """A read or write against the stock store failed."""
