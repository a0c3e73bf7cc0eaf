"""
In-process document store. Used for local runs and the test suite.
A single lock serializes writes, which gives every transaction the same
all-or-nothing semantics DynamoDB provides.
"""
import copy
import threading
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .errors import ConditionFailedError, NotFoundError
from .logging import logger
from .models import COLLECTIONS
from .store import DocumentStore, PutOp, UpdateOp, matches, new_id, sort_items


class InMemoryDocumentStore(DocumentStore):

    def __init__(self):
        super().__init__()
        self._lock = threading.RLock()
        self._data: Dict[str, Dict[str, dict]] = {name: {} for name in COLLECTIONS}

    def _collection(self, collection: str) -> Dict[str, dict]:
        try:
            return self._data[collection]
        except KeyError:
            raise NotFoundError(f'Unknown collection {collection}')

    def create(self, collection: str, item: Dict[str, Any]) -> Dict[str, Any]:
        item = dict(item)
        item.setdefault('id', new_id())
        self.transact([PutOp(collection, item)])
        return copy.deepcopy(item)

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            item = self._collection(collection).get(doc_id)
            return copy.deepcopy(item) if item is not None else None

    def query(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False
    ) -> List[Dict[str, Any]]:
        with self._lock:
            items = [copy.deepcopy(i) for i in self._collection(collection).values()
                     if matches(i, filters)]
        return sort_items(items, order_by, descending)

    def update(
        self,
        collection: str,
        doc_id: str,
        set_fields: Optional[Dict[str, Any]] = None,
        add_fields: Optional[Dict[str, Any]] = None,
        expected: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        if self.get(collection, doc_id) is None:
            raise NotFoundError(f'{collection} document {doc_id} not found')
        self.transact([UpdateOp(collection, doc_id, set_fields or {},
                                add_fields or {}, expected or {})])
        return self.get(collection, doc_id)

    def delete(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            item = self._collection(collection).pop(doc_id, None)
        if item is not None:
            self.notify(collection)
        return item

    def transact(self, operations: List[Any]) -> None:
        touched = set()
        with self._lock:
            # Check every condition before mutating anything
            for index, op in enumerate(operations):
                docs = self._collection(op.collection)
                if isinstance(op, PutOp):
                    if op.item.get('id') in docs:
                        raise ConditionFailedError(
                            f"{op.collection} document {op.item.get('id')} already exists", index)
                elif isinstance(op, UpdateOp):
                    current = docs.get(op.doc_id)
                    if current is None:
                        raise ConditionFailedError(
                            f'{op.collection} document {op.doc_id} not found', index)
                    if not matches(current, op.expected):
                        raise ConditionFailedError(
                            f'{op.collection} document {op.doc_id} changed concurrently', index)
                else:
                    raise TypeError(f'Unsupported operation {op!r}')

            for op in operations:
                docs = self._collection(op.collection)
                if isinstance(op, PutOp):
                    docs[op.item['id']] = copy.deepcopy(op.item)
                else:
                    current = docs[op.doc_id]
                    current.update(copy.deepcopy(op.set))
                    for key, delta in op.add.items():
                        current[key] = current.get(key, Decimal('0')) + delta
                touched.add(op.collection)

        logger.debug(f"Committed {len(operations)} operations on {sorted(touched)}")
        for collection in touched:
            self.notify(collection)

    def disconnect(self, error: Exception):
        """Drop every live subscription, as a lost connection would."""
        for collection in COLLECTIONS:
            for subscription in self.subscriptions_for(collection):
                subscription.fail(error)
