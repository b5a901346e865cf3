"""Service layer for ClipKeep."""

from .clipboard_service import ClipboardService
from .command_service import CommandService
from .events import CLIPBOARD_UPDATED, DATA_CHANGED, IP_DETECTED, EventBus
from .persistence_service import PersistenceService

__all__ = [
    "CLIPBOARD_UPDATED",
    "DATA_CHANGED",
    "IP_DETECTED",
    "ClipboardService",
    "CommandService",
    "EventBus",
    "PersistenceService",
]
