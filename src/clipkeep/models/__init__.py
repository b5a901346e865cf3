from clipkeep.models.items import (
    AppData,
    AppSettings,
    BookmarkItem,
    ClipboardItem,
    IpHistoryItem,
)
from clipkeep.models.results import CommandResult, ErrorKind

__all__ = [
    'AppData',
    'AppSettings',
    'BookmarkItem',
    'ClipboardItem',
    'CommandResult',
    'ErrorKind',
    'IpHistoryItem',
]
