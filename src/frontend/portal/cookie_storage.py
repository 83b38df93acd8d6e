"""Browser cookies as the session's key/value store.

Values are read from the cookies the browser sent with the page request, so a
reload keeps the user signed in. Writes update the in-memory copy at once and
are queued until ``flush`` hands them to a CookieManager component, which sets
or deletes them in the browser.
"""
import logging
import os
from collections.abc import Iterator, Mapping, MutableMapping
from datetime import datetime, timedelta
from urllib.parse import unquote

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# ── configurable via .env ──
AUTH_COOKIE_DAYS = int(os.getenv("AUTH_COOKIE_DAYS", "30"))


class CookieStorage(MutableMapping):
    def __init__(self, cookies: Mapping | None = None, max_age_days: int = None):
        # the browser sends cookie values percent-encoded
        self._items = {k: unquote(v) for k, v in (cookies or {}).items()}
        self.max_age = timedelta(days=max_age_days or AUTH_COOKIE_DAYS)
        self.pending: list[tuple[str, str, str | None]] = []

    def __getitem__(self, key: str) -> str:
        return self._items[key]

    def __setitem__(self, key: str, value: str) -> None:
        self._items[key] = value
        self.pending.append(("set", key, value))

    def __delitem__(self, key: str) -> None:
        del self._items[key]
        self.pending.append(("delete", key, None))

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def flush(self, manager) -> int:
        """Send queued writes through an ``extra_streamlit_components.CookieManager``."""
        ops, self.pending = self.pending, []
        for i, (op, key, value) in enumerate(ops):
            # component keys must be unique within one script run
            if op == "set":
                manager.set(key, value, expires_at=datetime.now() + self.max_age,
                            key=f"cookie_set_{i}")
            else:
                manager.delete(key, key=f"cookie_delete_{i}")
        if ops:
            logger.debug("Flushed %d cookie writes", len(ops))
        return len(ops)
