import logging
import threading
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

CLIPBOARD_UPDATED = "clipboard-updated"
IP_DETECTED = "ip-detected"
DATA_CHANGED = "data-changed"

Listener = Callable[[Any], None]


class EventBus:
    """Fire-and-forget fan-out of events to listeners.

    Listeners run on the emitting thread. A listener that raises is logged and
    does not stop the others.
    """

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Listener]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event: str, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.setdefault(event, []).append(listener)

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(event, [])
                if listener in listeners:
                    listeners.remove(listener)

        return unsubscribe

    def emit(self, event: str, payload: Any = None) -> None:
        with self._lock:
            listeners = list(self._listeners.get(event, ()))
        for listener in listeners:
            try:
                listener(payload)
            except Exception:
                logger.exception("Listener for %s failed", event)
