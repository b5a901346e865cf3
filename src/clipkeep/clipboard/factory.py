import platform
from typing import Type

from clipkeep.clipboard.base import ClipboardReader


def get_clipboard_class() -> Type[ClipboardReader]:
    system = platform.system()

    if system == "Windows":
        from clipkeep.clipboard.windows import WindowsClipboard
        return WindowsClipboard
    else:
        raise NotImplementedError(f"Platform '{system}' is not supported")


def get_clipboard_reader() -> ClipboardReader:
    clipboard_class = get_clipboard_class()
    return clipboard_class()
