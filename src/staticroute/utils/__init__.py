"""File and locking helpers."""
