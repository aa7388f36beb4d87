"""
Document store backends.
"""

from scripthub.store.base import DocumentStore, join_path, split_path
from scripthub.store.memory import MemoryDocumentStore
from scripthub.store.sql import SQLDocumentStore

__all__ = [
    "DocumentStore",
    "MemoryDocumentStore",
    "SQLDocumentStore",
    "join_path",
    "split_path",
]
