"""ClipKeep: clipboard history, bookmarks and IP tracking backed by a local JSON store."""

__version__ = "1.0.0"

__all__ = ["__version__"]
