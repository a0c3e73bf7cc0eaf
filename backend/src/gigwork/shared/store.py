"""
Persistence interface shared by every backend adapter.

All adapters expose the same canonical schema: four collections whose
documents are keyed by ``id``. Conditional updates, atomic numeric deltas and
all-or-nothing transactions are part of the contract because the workflow
engine relies on them for its invariants.
"""
import uuid
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .logging import logger


def new_id() -> str:
    return str(uuid.uuid4())


def matches(item: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
    """Equality match on every filter field. A tuple/list value means 'any of'."""
    for key, expected in (filters or {}).items():
        value = item.get(key)
        if isinstance(expected, (tuple, list)):
            if value not in expected:
                return False
        elif value != expected:
            return False
    return True


def sort_items(items: List[dict], order_by: Optional[str], descending: bool = False) -> List[dict]:
    if not order_by:
        return items
    return sorted(items, key=lambda i: (i.get(order_by) is None, i.get(order_by) or ''),
                  reverse=descending)


@dataclass(frozen=True)
class PutOp:
    """Insert a new document; fails if the id already exists."""
    collection: str
    item: Dict[str, Any]


@dataclass(frozen=True)
class UpdateOp:
    """
    Update an existing document.

    ``set`` overwrites fields, ``add`` applies atomic numeric deltas and
    ``expected`` lists field values that must hold for the write to apply.
    """
    collection: str
    doc_id: str
    set: Dict[str, Any] = field(default_factory=dict)
    add: Dict[str, Any] = field(default_factory=dict)
    expected: Dict[str, Any] = field(default_factory=dict)


class Subscription:
    """Handle for a live query. ``cancel`` stops further deliveries."""

    def __init__(
        self,
        store: 'DocumentStore',
        collection: str,
        filters: Optional[Dict[str, Any]],
        on_change: Callable[[List[dict]], None],
        on_error: Optional[Callable[[Exception], None]] = None,
        order_by: Optional[str] = None,
        descending: bool = False
    ):
        self.id = new_id()
        self.store = store
        self.collection = collection
        self.filters = dict(filters or {})
        self.on_change = on_change
        self.on_error = on_error
        self.order_by = order_by
        self.descending = descending
        self.active = True

    def refresh(self):
        """Refetch the full result set and deliver it as a snapshot."""
        if not self.active:
            return
        items = self.store.query(self.collection, self.filters, self.order_by, self.descending)
        if self.active:
            self.on_change(items)

    def cancel(self):
        if self.active:
            self.active = False
            self.store._remove_subscription(self)

    def fail(self, error: Exception):
        """Mark the subscription as lost and notify its owner."""
        if not self.active:
            return
        logger.warning(f"Subscription on {self.collection} lost: {error}")
        self.cancel()
        if self.on_error:
            self.on_error(error)


class DocumentStore(ABC):
    """Create/read/update/delete plus live subscriptions over the four collections."""

    def __init__(self):
        self._subscriptions: Dict[str, Subscription] = {}
        self._subscriptions_lock = threading.Lock()

    @abstractmethod
    def create(self, collection: str, item: Dict[str, Any]) -> Dict[str, Any]:
        """Insert ``item``; an ``id`` is generated when absent."""

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return the document or None."""

    @abstractmethod
    def query(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False
    ) -> List[Dict[str, Any]]:
        """Return every document matching ``filters``."""

    @abstractmethod
    def update(
        self,
        collection: str,
        doc_id: str,
        set_fields: Optional[Dict[str, Any]] = None,
        add_fields: Optional[Dict[str, Any]] = None,
        expected: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Apply a single-document update and return the new document.

        Raises:
            NotFoundError: If the document does not exist
            ConditionFailedError: If ``expected`` does not hold
        """

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Delete the document and return it, or None if it did not exist."""

    @abstractmethod
    def transact(self, operations: List[Any]) -> None:
        """
        Apply ``PutOp``/``UpdateOp`` operations atomically.

        Raises:
            ConditionFailedError: With ``index`` set to the failing operation
        """

    def subscribe(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]],
        on_change: Callable[[List[dict]], None],
        on_error: Optional[Callable[[Exception], None]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        initial_snapshot: bool = True
    ) -> Subscription:
        """
        Register a live query. Unless ``initial_snapshot`` is False the current
        snapshot is delivered immediately, then a full snapshot after every
        change to the collection.

        If the first delivery fails the subscription is dropped and the
        error is raised to the caller.
        """
        subscription = Subscription(
            self, collection, filters, on_change, on_error, order_by, descending
        )
        with self._subscriptions_lock:
            self._subscriptions[subscription.id] = subscription
        if initial_snapshot:
            try:
                subscription.refresh()
            except Exception:
                subscription.cancel()
                raise
        return subscription

    def _remove_subscription(self, subscription: Subscription):
        with self._subscriptions_lock:
            self._subscriptions.pop(subscription.id, None)

    def subscriptions_for(self, collection: str) -> List[Subscription]:
        with self._subscriptions_lock:
            return [s for s in self._subscriptions.values()
                    if s.collection == collection and s.active]

    def deliver(self, subscription: Subscription) -> bool:
        """
        Refresh one subscription after a committed write.

        A failing refresh or a failing recovery marks the subscription as
        lost; observer errors are logged and never reach the writer.

        Returns:
            True if the snapshot was delivered
        """
        try:
            subscription.refresh()
            return True
        except Exception as e:
            try:
                subscription.fail(e)
            except Exception:
                logger.exception(f"Subscription on {subscription.collection} could not recover")
            return False

    def notify(self, collection: str):
        """Push a fresh snapshot to every subscription on ``collection``."""
        for subscription in self.subscriptions_for(collection):
            self.deliver(subscription)
