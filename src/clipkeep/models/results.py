from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    PERSISTENCE = "persistence"
    CLIPBOARD = "clipboard"
    STATE = "state"
    INTERNAL = "internal"


class CommandResult(BaseModel):
    """Uniform return value of every command exposed to the UI."""
    ok: bool
    value: Any = None
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None

    @classmethod
    def success(cls, value: Any = None) -> "CommandResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, error: str) -> "CommandResult":
        return cls(ok=False, error=error, kind=kind)
