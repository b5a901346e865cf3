from clipkeep.clipboard.base import ClipboardReader
from clipkeep.clipboard.factory import get_clipboard_class, get_clipboard_reader

__all__ = [
    'ClipboardReader',
    'get_clipboard_class',
    'get_clipboard_reader',
]
