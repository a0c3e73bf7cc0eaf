"""
Live views over the document store.

A view holds the latest snapshot of one collection scope. Every delivery
replaces the whole list; nothing is patched incrementally. A lost
subscription is re-established and followed by a full refetch, and once a
view is closed late deliveries are dropped.
"""
import threading
from typing import Callable, List, Optional

from .access import is_admin
from .assignments import worker_assignment_filters
from .logging import logger
from .models import ASSIGNMENTS, PROFILES, SUBMISSIONS, WITHDRAWALS

# Field each collection is listed by, newest first
ORDERING = {
    PROFILES: 'created_at',
    ASSIGNMENTS: 'created_at',
    SUBMISSIONS: 'submitted_at',
    WITHDRAWALS: 'requested_at',
}


def scope_for(viewer: dict, collection: str, cfg) -> dict:
    """Filters restricting what ``viewer`` may see of ``collection``."""
    if is_admin(viewer):
        return {}
    if collection == ASSIGNMENTS:
        return worker_assignment_filters(cfg)
    if collection == PROFILES:
        return {'id': viewer['id']}
    return {'worker_id': viewer['id']}


class LiveView:

    def __init__(
        self,
        store,
        collection: str,
        filters: Optional[dict] = None,
        order_by: Optional[str] = None,
        descending: bool = True,
        on_update: Optional[Callable[[List[dict]], None]] = None,
        resubscribe_attempts: int = 3
    ):
        self.store = store
        self.collection = collection
        self.filters = dict(filters or {})
        self.order_by = order_by or ORDERING.get(collection)
        self.descending = descending
        self.on_update = on_update
        self.resubscribe_attempts = resubscribe_attempts
        self.items: List[dict] = []
        self.snapshots = 0
        self.error: Optional[Exception] = None
        self.closed = True
        self._subscription = None
        self._lock = threading.Lock()

    def open(self, initial_snapshot: bool = True) -> 'LiveView':
        """
        Start listening. With ``initial_snapshot`` False the view stays empty
        until the first change reaches it.
        """
        self.closed = False
        try:
            self._subscribe(initial_snapshot)
        except Exception:
            self.closed = True
            raise
        return self

    def close(self):
        self.closed = True
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.cancel()

    def __enter__(self) -> 'LiveView':
        if self.closed:
            self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _subscribe(self, initial_snapshot: bool = True):
        self._subscription = self.store.subscribe(
            self.collection,
            self.filters,
            self._on_snapshot,
            on_error=self._on_lost,
            order_by=self.order_by,
            descending=self.descending,
            initial_snapshot=initial_snapshot
        )

    def _on_snapshot(self, items: List[dict]):
        with self._lock:
            if self.closed:
                return
            self.items = list(items)
            self.snapshots += 1
            self.error = None
        if self.on_update:
            self.on_update(self.items)

    def _on_lost(self, error: Exception):
        if self.closed:
            return
        logger.warning(f"Live view on {self.collection} lost its subscription: {error}")
        self._subscription = None

        for attempt in range(1, self.resubscribe_attempts + 1):
            if self.closed:
                return
            try:
                self._subscribe(initial_snapshot=False)
                # The gap between loss and resubscription is closed by a full refetch
                self._on_snapshot(self.store.query(
                    self.collection, self.filters, self.order_by, self.descending
                ))
                logger.info(f"Live view on {self.collection} resubscribed (attempt {attempt})")
                return
            except Exception as e:
                self.error = e
                logger.warning(f"Resubscribe attempt {attempt} on {self.collection} failed: {e!r}")
                if self._subscription is not None:
                    self._subscription.cancel()
                    self._subscription = None

        logger.error(f"Live view on {self.collection} gave up after "
                     f"{self.resubscribe_attempts} attempts")


def open_view(backend, viewer: dict, collection: str,
              on_update: Optional[Callable[[List[dict]], None]] = None) -> LiveView:
    """Open a live view of ``collection`` scoped to what ``viewer`` may see."""
    view = LiveView(
        backend.store,
        collection,
        scope_for(viewer, collection, backend.config),
        on_update=on_update,
        resubscribe_attempts=backend.config.RESUBSCRIBE_ATTEMPTS
    )
    return view.open()
