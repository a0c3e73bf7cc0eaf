"""
Live views delivered over the API Gateway WebSocket API.

A connection is registered on $connect with the caller's identity and then
watches one collection. The stream consumer rebuilds one scoped LiveView per
watching connection, lets the store refresh the views a change batch
touches, and pushes each refreshed snapshot to its connection. Connections
the gateway reports as gone are dropped.
"""
import json
import threading
from abc import ABC, abstractmethod
from typing import Dict, List

import boto3

from .access import is_admin, load_actor, require_approved_worker
from .aws import AWS_ERRORS, client_error_code, remote_error
from .config import Config, config
from .errors import AuthError, NotFoundError, ValidationError
from .live_views import LiveView, scope_for
from .logging import logger
from .models import CONNECTIONS, PROFILES, VIEWABLE_COLLECTIONS
from .utils import DecimalEncoder, now_iso


class ViewPublisher(ABC):

    @abstractmethod
    def push(self, connection_id: str, message: dict) -> bool:
        """Send ``message`` to a connection. Returns False if it is gone."""


class InMemoryViewPublisher(ViewPublisher):

    def __init__(self):
        self._lock = threading.Lock()
        self.sent: Dict[str, List[dict]] = {}
        self.gone = set()

    def push(self, connection_id: str, message: dict) -> bool:
        with self._lock:
            if connection_id in self.gone:
                return False
            self.sent.setdefault(connection_id, []).append(message)
        return True


class ApiGatewayViewPublisher(ViewPublisher):

    def __init__(self, cfg: Config = config, client=None):
        self.config = cfg
        self._client = client

    @property
    def client(self):
        # Created on first push; the endpoint is only known once the API is deployed
        if self._client is None:
            self._client = boto3.client(
                'apigatewaymanagementapi',
                endpoint_url=self.config.WEBSOCKET_ENDPOINT,
                region_name=self.config.AWS_REGION
            )
        return self._client

    def push(self, connection_id: str, message: dict) -> bool:
        try:
            self.client.post_to_connection(
                ConnectionId=connection_id,
                Data=json.dumps(message, cls=DecimalEncoder).encode('utf-8')
            )
        except AWS_ERRORS as e:
            if client_error_code(e) == 'GoneException':
                logger.info(f"Connection {connection_id} is gone")
                return False
            raise remote_error(f'push to {connection_id}', e)
        return True


def connect(backend, connection_id: str, access_token: str) -> dict:
    """Register a connection for the user the access token belongs to."""
    if not connection_id:
        raise ValidationError('Missing connection id')
    if not access_token:
        raise AuthError('Not authenticated')
    viewer = load_actor(backend, backend.identity.user_for_token(access_token))
    if not is_admin(viewer):
        require_approved_worker(viewer)

    connection = backend.store.create(CONNECTIONS, {
        'id': connection_id,
        'user_id': viewer['id'],
        'connected_at': now_iso(),
    })
    logger.info(f"Connection {connection_id} opened by {viewer['id']}")
    return connection


def disconnect(backend, connection_id: str) -> bool:
    return backend.store.delete(CONNECTIONS, connection_id) is not None


def _connection_view(backend, viewer: dict, connection: dict, gone: set) -> LiveView:
    collection = connection['collection']

    def push(items):
        if not backend.publisher.push(connection['id'], {'collection': collection, 'items': items}):
            gone.add(connection['id'])

    return LiveView(
        backend.store,
        collection,
        scope_for(viewer, collection, backend.config),
        on_update=push,
        resubscribe_attempts=backend.config.RESUBSCRIBE_ATTEMPTS
    )


def _may_watch(viewer) -> bool:
    """Deleted profiles and workers whose approval was revoked lose their views."""
    return viewer is not None and (is_admin(viewer) or bool(viewer.get('is_approved')))


def _drop(backend, connection_ids):
    for connection_id in connection_ids:
        disconnect(backend, connection_id)
        logger.info(f"Dropped connection {connection_id}")


def watch(backend, connection_id: str, collection: str) -> list:
    """
    Point a connection at ``collection`` and push its current snapshot.

    Returns:
        The snapshot that was pushed
    """
    if collection not in VIEWABLE_COLLECTIONS:
        raise ValidationError(
            f'Invalid collection. Must be one of: {", ".join(VIEWABLE_COLLECTIONS)}'
        )
    connection = backend.store.get(CONNECTIONS, connection_id)
    if connection is None:
        raise NotFoundError('Connection not registered')
    viewer = load_actor(backend, connection['user_id'])
    if not is_admin(viewer):
        require_approved_worker(viewer)

    connection = backend.store.update(CONNECTIONS, connection_id, set_fields={'collection': collection})
    gone = set()
    view = _connection_view(backend, viewer, connection, gone)
    with view:
        items = view.items
    _drop(backend, gone)
    return items


def sync_connections(backend, records: List[dict]) -> dict:
    """
    Push fresh snapshots to every connection affected by a batch of
    DynamoDB stream records.
    """
    store = backend.store
    viewers = {}
    gone = set()
    views = []
    refreshed = 0
    try:
        for connection in store.query(CONNECTIONS):
            if not connection.get('collection'):
                continue
            user_id = connection['user_id']
            if user_id not in viewers:
                viewers[user_id] = store.get(PROFILES, user_id)
            if not _may_watch(viewers[user_id]):
                gone.add(connection['id'])
                continue
            view = _connection_view(backend, viewers[user_id], connection, gone)
            views.append(view.open(initial_snapshot=False))

        refreshed = store.dispatch_stream_records(records)
    finally:
        for view in views:
            view.close()

    _drop(backend, gone)
    return {'connections': len(views), 'refreshed': refreshed, 'dropped': len(gone)}
