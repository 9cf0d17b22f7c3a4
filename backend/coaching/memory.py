# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Short-term chat memory: the last user/coach exchange per session key.

Only one exchange is kept, clipped to 100 characters per side.  The full
transcript belongs in the encrypted vault.

Entries expire ``ttl_seconds`` after they were written and the map never
holds more than ``max_entries`` keys; the least recently written key goes
first.
"""

import threading
import time
from typing import Any, Optional

from core.config import settings

_CLIP = 100


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    if isinstance(value, dict) and isinstance(value.get("message"), str):
        return value["message"]
    return str(value)


class ExchangeMemory:
    def __init__(self, ttl_seconds: float = 3600, max_entries: int = 10_000) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._lock = threading.Lock()
        # key -> (written_at, (user_text, ai_text)); insertion order is write order
        self._exchanges: dict[str, tuple[float, tuple[str, str]]] = {}

    def remember(self, key: str, user_message: Any, ai_response: Any, now: Optional[float] = None) -> str:
        now = time.monotonic() if now is None else now
        exchange = (_as_text(user_message)[:_CLIP], _as_text(ai_response)[:_CLIP])
        with self._lock:
            self._exchanges.pop(key, None)
            self._exchanges[key] = (now, exchange)
            self._prune(now)
        return self._describe(exchange)

    def context_for(self, key: str, now: Optional[float] = None) -> str:
        now = time.monotonic() if now is None else now
        with self._lock:
            entry = self._exchanges.get(key)
            if entry is not None and now - entry[0] >= self.ttl_seconds:
                del self._exchanges[key]
                entry = None
        return self._describe(entry[1]) if entry else ""

    def forget(self, key: str) -> None:
        with self._lock:
            self._exchanges.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._exchanges.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._exchanges)

    def _prune(self, now: float) -> None:
        # Oldest writes sit at the front, so stop at the first live entry
        for key in list(self._exchanges):
            written_at, _exchange = self._exchanges[key]
            if len(self._exchanges) <= self.max_entries and now - written_at < self.ttl_seconds:
                break
            del self._exchanges[key]

    @staticmethod
    def _describe(exchange: tuple[str, str]) -> str:
        user_text, ai_text = exchange
        return f"Previous: User asked about {user_text}... You advised: {ai_text}..."


exchange_memory = ExchangeMemory(settings.chat_memory_ttl_seconds, settings.chat_memory_max_entries)
