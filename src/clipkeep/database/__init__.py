"""Storage layer for ClipKeep.

Holds the in-memory state store and the rules that keep its bounded
collections consistent.
"""

from clipkeep.database.state_store import IngestResult, ItemKind, SortMode, StateStore

__all__ = [
    'IngestResult',
    'ItemKind',
    'SortMode',
    'StateStore',
]
