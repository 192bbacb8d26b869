"""
Record Stores

Persistence collaborators for webhook handlers.
"""

from .base import Store
from .memory import MemoryStore
from .postgres import PostgresStore

__all__ = ["Store", "MemoryStore", "PostgresStore"]
