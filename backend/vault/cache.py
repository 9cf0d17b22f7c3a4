# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Process-wide cache of decrypted profile / progress sub-documents.

Populated whenever a vault is decrypted or written on behalf of its owner
(login, register, vault reads and mutations) and pruned on account
deletion.  Two readers use it: chat personalization for callers that send
no context, and the admin aggregate (the server cannot decrypt vaults of
users who are not logged in, so the aggregate covers users seen since the
process started).

Nothing here is authoritative; the encrypted vault is.
"""

import copy
import threading
from typing import Optional


class CoachingCache:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._profiles: dict[str, dict] = {}
        self._progress: dict[str, dict] = {}

    def remember(self, user_id: str, document: dict) -> None:
        """Refresh both entries for *user_id* from a full vault document."""
        profile = document.get("profile")
        progress = document.get("progress")
        with self._lock:
            if isinstance(profile, dict) and profile:
                self._profiles[user_id] = copy.deepcopy(profile)
            else:
                self._profiles.pop(user_id, None)
            if isinstance(progress, dict):
                self._progress[user_id] = copy.deepcopy(progress)
            else:
                self._progress.pop(user_id, None)

    def profile(self, user_id: str) -> Optional[dict]:
        with self._lock:
            profile = self._profiles.get(user_id)
            return copy.deepcopy(profile) if profile is not None else None

    def progress(self, user_id: str) -> Optional[dict]:
        with self._lock:
            progress = self._progress.get(user_id)
            return copy.deepcopy(progress) if progress is not None else None

    def forget(self, user_id: str) -> None:
        with self._lock:
            self._profiles.pop(user_id, None)
            self._progress.pop(user_id, None)

    def progress_entries(self) -> list[tuple[str, dict]]:
        with self._lock:
            return [(user_id, copy.deepcopy(entry)) for user_id, entry in self._progress.items()]

    @property
    def profile_count(self) -> int:
        with self._lock:
            return len(self._profiles)

    def clear(self) -> None:
        with self._lock:
            self._profiles.clear()
            self._progress.clear()


coaching_cache = CoachingCache()
