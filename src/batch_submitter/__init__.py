"""Rollup batch submitter process driver."""

__version__ = "0.1.0"
