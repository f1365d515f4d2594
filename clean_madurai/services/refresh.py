"""Dashboard refresh: rebuild the aggregation on a timer or whenever the store pushes a change."""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Iterator, Protocol, Sequence

from clean_madurai.config import settings
from clean_madurai.domain import Account, Complaint
from clean_madurai.services.analytics_service import build_dashboard
from clean_madurai.services.document_store import DocumentStore

logger = logging.getLogger(__name__)

WATCHED = ("complaints", "users")


class RefreshStrategy(Protocol):
    def ticks(self, store: DocumentStore, collections: Sequence[str]) -> Iterator[None]: ...


class PollRefresh:
    def __init__(self, interval_s: float = settings.dashboard_poll_interval_s, sleep: Callable[[float], None] = time.sleep) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self.interval_s = interval_s
        self.sleep = sleep

    def ticks(self, store: DocumentStore, collections: Sequence[str]) -> Iterator[None]:
        while True:
            yield None
            self.sleep(self.interval_s)


class SubscribeRefresh:
    """One tick per change set; stores without push support are polled instead."""

    def __init__(self, fallback: PollRefresh | None = None) -> None:
        self.fallback = fallback or PollRefresh()

    def ticks(self, store: DocumentStore, collections: Sequence[str]) -> Iterator[None]:
        if not getattr(store, "supports_subscribe", False):
            logger.warning(
                "%s has no change subscription; polling every %ss instead",
                type(store).__name__,
                self.fallback.interval_s,
            )
            yield from self.fallback.ticks(store, collections)
            return
        for change_set in store.subscribe(collections):
            logger.debug("Dashboard refresh on %s (%d changes)", change_set.collection, len(change_set.changes))
            yield None


def strategy_for(store: DocumentStore) -> RefreshStrategy:
    if getattr(store, "supports_subscribe", False):
        return SubscribeRefresh()
    return PollRefresh()


class DashboardFeed:
    def __init__(self, store: DocumentStore, strategy: RefreshStrategy | None = None, *, latest: int = settings.dashboard_latest_count) -> None:
        self.store = store
        self.strategy = strategy or PollRefresh()
        self.latest = latest

    def snapshot(self) -> dict[str, Any]:
        complaints = [Complaint.from_record(k, v) for k, v in self.store.all("complaints")]
        accounts = [Account.from_record(k, v) for k, v in self.store.all("users")]
        return build_dashboard(complaints, accounts, latest=self.latest)

    def updates(self, max_updates: int | None = None) -> Iterator[dict[str, Any]]:
        sent = 0
        for _ in self.strategy.ticks(self.store, WATCHED):
            yield self.snapshot()
            sent += 1
            if max_updates is not None and sent >= max_updates:
                return
