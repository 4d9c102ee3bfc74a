"""Command-line interface for the tokenvest vesting API."""

__all__ = []
