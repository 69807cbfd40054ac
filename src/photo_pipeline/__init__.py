"""Batch photo transcoding and metadata rewriting engine."""

__version__ = "0.1.0"
