import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator
from ulid import ULID

from clipkeep.utils.ip_extractor import is_valid_ip

logger = logging.getLogger(__name__)

DATA_VERSION = "1.0.0"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_item_id(prefix: str) -> str:
    return f"{prefix}_{ULID.from_datetime(utcnow())}"


def content_size(content: str) -> int:
    return len(content.encode("utf-8", errors="surrogatepass"))


class _Timestamped(BaseModel):
    # Hand-edited files may carry naive timestamps; treat them as UTC so that
    # recency comparisons never mix naive and aware values.
    @field_validator("timestamp", "last_accessed", mode="after", check_fields=False)
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class ClipboardItem(_Timestamped):
    """One entry of the bounded clipboard history."""
    id: str = Field(default_factory=lambda: new_item_id("i"))
    content: str
    content_type: str = "text"
    timestamp: datetime = Field(default_factory=utcnow)
    size: int = 0
    access_count: int = 0
    last_accessed: Optional[datetime] = None

    @classmethod
    def from_text(cls, content: str, content_type: str = "text") -> "ClipboardItem":
        return cls(content=content, content_type=content_type, size=content_size(content))

    @property
    def last_used(self) -> datetime:
        return self.last_accessed or self.timestamp

    def touch(self) -> None:
        self.access_count += 1
        self.last_accessed = utcnow()


class BookmarkItem(_Timestamped):
    """A user-promoted entry. Bookmarks are never evicted."""
    id: str = Field(default_factory=lambda: new_item_id("b"))
    name: str
    content: str
    content_type: str = "text"
    timestamp: datetime = Field(default_factory=utcnow)
    tags: List[str] = Field(default_factory=list)
    access_count: int = 0
    last_accessed: Optional[datetime] = None

    @field_validator("tags", mode="before")
    @classmethod
    def _normalise_tags(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        tags: List[str] = []
        for raw in value:
            tag = str(raw).strip()
            if tag and tag not in tags:
                tags.append(tag)
        return tags

    @property
    def last_used(self) -> datetime:
        return self.last_accessed or self.timestamp

    def touch(self) -> None:
        self.access_count += 1
        self.last_accessed = utcnow()


class IpHistoryItem(_Timestamped):
    ip: str
    timestamp: datetime = Field(default_factory=utcnow)
    count: int = 1

    @field_validator("ip")
    @classmethod
    def _valid_dotted_quad(cls, value: str) -> str:
        value = value.strip()
        if not is_valid_ip(value):
            raise ValueError(f"{value!r} is not a valid IPv4 address")
        return value


class AppSettings(BaseModel):
    hotkey: str = "cmd+shift+v"
    history_limit: int = Field(default=50, ge=1, le=1000)
    ip_limit: int = Field(default=10, ge=1, le=1000)
    auto_start: bool = True
    show_notifications: bool = False


class AppData(BaseModel):
    """Everything that is persisted to the data file."""
    version: str = DATA_VERSION
    history: List[ClipboardItem] = Field(default_factory=list)
    bookmarks: List[BookmarkItem] = Field(default_factory=list)
    recent_ips: List[IpHistoryItem] = Field(default_factory=list)
    settings: AppSettings = Field(default_factory=AppSettings)

    @field_validator("recent_ips", mode="before")
    @classmethod
    def _drop_invalid_ips(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return value
        kept = []
        for entry in value:
            ip = entry.get("ip") if isinstance(entry, dict) else getattr(entry, "ip", None)
            if isinstance(ip, str) and is_valid_ip(ip.strip()):
                kept.append(entry)
            else:
                logger.warning("Dropping invalid IP history entry: %r", ip)
        return kept
