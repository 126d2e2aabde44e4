"""aries.aggregator — concurrent identifier lookup across all services.

Exports:
    Aggregator        — fan-out / bounded fan-in engine
    DownstreamClient  — single-service lookup with failure classification
    LookupResult      — one service's answer
    AggregateReport   — merged answer with timing and hit counts
"""

from __future__ import annotations

from aries.aggregator.client import DownstreamClient
from aries.aggregator.engine import Aggregator
from aries.aggregator.models import AggregateReport, LookupResult

__all__ = ["AggregateReport", "Aggregator", "DownstreamClient", "LookupResult"]
