"""Transcript reconciliation module for LiveScribe."""

from .aggregator import TranscriptAggregator

__all__ = [
    "TranscriptAggregator",
]
