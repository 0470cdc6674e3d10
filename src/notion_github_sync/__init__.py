"""Bidirectional reconciliation between a Notion tracker and GitHub Projects."""

__version__ = "0.3.0"
