"""
Storage Module
Durable snapshot backends.
"""
from .durable import (
    BaseDurableStore,
    FileDurableStore,
    MemoryDurableStore,
    get_durable_store,
)

__all__ = [
    "BaseDurableStore",
    "FileDurableStore",
    "MemoryDurableStore",
    "get_durable_store",
]
