"""Pusher subscription that refreshes templates when processing finishes.

The connection is only held while some template is PROCESSING. Notifications
are treated as a hint to re-fetch; their payload is never used as data.
"""
import logging
import os
from collections.abc import Callable, Iterable

import pysher
from dotenv import load_dotenv

from .models import Template
from .query_cache import TEMPLATES, QueryCache

load_dotenv()

logger = logging.getLogger(__name__)

# ── configurable via .env ──
PUSHER_KEY = os.getenv("PUSHER_KEY", "")
PUSHER_CLUSTER = os.getenv("PUSHER_CLUSTER", "mt1")

ADMIN_CHANNEL = "admin-channel"
TEMPLATE_EVENTS = ("TEMPLATE_READY", "TEMPLATE_FAILED")
CONNECTION_ESTABLISHED = "pusher:connection_established"


def default_connector() -> pysher.Pusher:
    return pysher.Pusher(PUSHER_KEY, cluster=PUSHER_CLUSTER)


def has_processing(templates: Iterable[Template] | None) -> bool:
    return any(t.status == "PROCESSING" for t in templates or ())


class TemplateWatcher:
    def __init__(self, cache: QueryCache, connector: Callable[[], pysher.Pusher] = None):
        self.cache = cache
        self.connector = connector or default_connector
        self.pusher = None
        self.channel = None

    @property
    def connected(self) -> bool:
        return self.pusher is not None

    def sync(self, templates: Iterable[Template] | None) -> None:
        """Connect while anything is processing, disconnect once nothing is."""
        if has_processing(templates):
            if not self.connected:
                self._connect()
        elif self.connected:
            self.close()

    def _connect(self) -> None:
        self.pusher = self.connector()
        self.pusher.connection.bind(CONNECTION_ESTABLISHED, self._subscribe)
        self.pusher.connect()
        logger.info("Watching %s for template processing events", ADMIN_CHANNEL)

    def _subscribe(self, *_) -> None:
        if self.pusher is None:
            return
        self.channel = self.pusher.subscribe(ADMIN_CHANNEL)
        for event in TEMPLATE_EVENTS:
            self.channel.bind(event, self._handle_done)

    def _handle_done(self, *_) -> None:
        self.cache.invalidate(TEMPLATES)

    def close(self) -> None:
        if self.pusher is None:
            return
        pusher, self.pusher, self.channel = self.pusher, None, None
        pusher.unsubscribe(ADMIN_CHANNEL)
        pusher.disconnect()
        logger.info("Stopped watching %s", ADMIN_CHANNEL)
