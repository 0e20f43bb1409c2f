"""Lemma-based full-text search over crawled sites."""

__version__ = "0.1.0"
