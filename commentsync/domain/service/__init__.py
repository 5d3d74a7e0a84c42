"""Domain services."""

from .base import Service
from .mutation_executor import MutationExecutor
from .sync_engine import ThreadSyncEngine, ThreadSyncEngineFactory

__all__ = [
    "MutationExecutor",
    "Service",
    "ThreadSyncEngine",
    "ThreadSyncEngineFactory",
]
