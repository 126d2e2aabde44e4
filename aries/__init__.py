"""Aries — identifier lookup aggregator.

Queries every registered backend service for an identifier in parallel and
merges the answers into one report.

Quickstart::

    from aries.db import init_db
    from aries.registry import ServiceRegistry, SQLiteServiceStore
    from aries.aggregator import Aggregator

    registry = ServiceRegistry(SQLiteServiceStore(init_db()))
    await registry.load()
    report = await Aggregator(registry).aggregate("42")
"""

__version__ = "1.0.0"
