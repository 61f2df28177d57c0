"""Static route reconciliation daemon."""

__version__ = "0.1.0"
