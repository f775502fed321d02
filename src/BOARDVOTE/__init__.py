"""BOARDVOTE: sequential multi-round board election engine."""

__version__ = "0.1.0"
