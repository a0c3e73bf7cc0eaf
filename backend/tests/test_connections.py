"""
Tests for live views pushed to WebSocket connections.
"""
import json
import pytest
from decimal import Decimal
from unittest.mock import MagicMock

from botocore.exceptions import ClientError

from conftest import uploaded
from gigwork.handlers.views.connect import handler as connect_handler
from gigwork.handlers.views.disconnect import handler as disconnect_handler
from gigwork.handlers.views.watch import handler as watch_handler
from gigwork.shared.auth import InMemoryIdentityService
from gigwork.shared.backend import Backend
from gigwork.shared.blob_store import InMemoryBlobStore
from gigwork.shared.commands import SubmitWorkCommand
from gigwork.shared.connections import (
    ApiGatewayViewPublisher,
    InMemoryViewPublisher,
    connect,
    disconnect,
    sync_connections,
    watch,
)
from gigwork.shared.dynamo import DynamoDocumentStore
from gigwork.shared.errors import AuthError, ForbiddenError, NotFoundError, RemoteError, ValidationError
from gigwork.shared.models import CONNECTIONS, SUBMISSIONS
from gigwork.shared.submissions import submit_work


def _token(backend, profile, password='secret123'):
    return backend.identity.authenticate(profile['email'], password)['access_token']


class TestConnect:
    """Tests for registering and releasing connections."""

    def test_connect_registers_viewer(self, backend, worker):
        connection = connect(backend, 'conn-1', _token(backend, worker))

        assert connection['user_id'] == worker['id']
        assert backend.store.get(CONNECTIONS, 'conn-1')['user_id'] == worker['id']

    def test_pending_worker_refused(self, backend, make_worker):
        pending = make_worker(approved=False)

        with pytest.raises(ForbiddenError):
            connect(backend, 'conn-1', _token(backend, pending))
        assert backend.store.get(CONNECTIONS, 'conn-1') is None

    def test_bad_token(self, backend):
        with pytest.raises(AuthError):
            connect(backend, 'conn-1', 'not-a-token')
        with pytest.raises(AuthError):
            connect(backend, 'conn-1', None)

    def test_disconnect(self, backend, worker):
        connect(backend, 'conn-1', _token(backend, worker))

        assert disconnect(backend, 'conn-1') is True
        assert disconnect(backend, 'conn-1') is False


class TestWatch:
    """Tests for pointing a connection at a collection."""

    def test_pushes_scoped_snapshot(self, backend, make_worker, assignment):
        mine, other = make_worker(), make_worker(name='Other Worker')
        submit_work(backend, mine, SubmitWorkCommand(assignment_id=assignment['id'], file=uploaded()))
        submit_work(backend, other, SubmitWorkCommand(assignment_id=assignment['id'], file=uploaded()))
        connect(backend, 'conn-1', _token(backend, mine))

        items = watch(backend, 'conn-1', SUBMISSIONS)

        assert [s['worker_id'] for s in items] == [mine['id']]
        assert backend.publisher.sent['conn-1'] == [{'collection': SUBMISSIONS, 'items': items}]
        assert backend.store.get(CONNECTIONS, 'conn-1')['collection'] == SUBMISSIONS
        assert backend.store.subscriptions_for(SUBMISSIONS) == []

    @pytest.mark.parametrize('collection', ['connections', 'payments', None])
    def test_unknown_collection(self, backend, worker, collection):
        connect(backend, 'conn-1', _token(backend, worker))

        with pytest.raises(ValidationError):
            watch(backend, 'conn-1', collection)

    def test_unregistered_connection(self, backend):
        with pytest.raises(NotFoundError):
            watch(backend, 'conn-404', SUBMISSIONS)

    def test_gone_connection_is_dropped(self, backend, worker):
        connect(backend, 'conn-1', _token(backend, worker))
        backend.publisher.gone.add('conn-1')

        watch(backend, 'conn-1', SUBMISSIONS)

        assert backend.store.get(CONNECTIONS, 'conn-1') is None


class TestSyncConnections:
    """Tests for stream-driven pushes over a mocked DynamoDB store."""

    ARN = 'arn:aws:dynamodb:us-east-1:123456789012:table/submissions/stream/2024-01-01T00:00:00.000'

    @pytest.fixture
    def tables(self):
        return {name: MagicMock() for name in
                ('profiles', 'assignments', 'submissions', 'withdrawals', 'connections')}

    @pytest.fixture
    def dynamo_backend(self, config, tables):
        resource = MagicMock()
        resource.Table.side_effect = lambda name: tables[name]
        profiles = {
            'w1': {'id': 'w1', 'role': 'worker', 'is_approved': True},
            'w2': {'id': 'w2', 'role': 'worker', 'is_approved': True},
        }
        tables['profiles'].get_item.side_effect = (
            lambda Key: {'Item': profiles[Key['id']]} if Key['id'] in profiles else {}
        )
        tables['submissions'].query.return_value = {
            'Items': [{'id': 's1', 'worker_id': 'w1', 'earned_amount': Decimal('50')}]
        }
        store = DynamoDocumentStore(config, resource=resource, client=MagicMock())
        return Backend(store, InMemoryBlobStore(), InMemoryIdentityService(), config,
                       InMemoryViewPublisher())

    def _record(self, worker_id):
        return {
            'eventSourceARN': self.ARN,
            'dynamodb': {'NewImage': {'id': {'S': 's1'}, 'worker_id': {'S': worker_id}}},
        }

    def test_pushes_only_affected_connections(self, dynamo_backend, tables):
        tables['connections'].scan.return_value = {'Items': [
            {'id': 'c1', 'user_id': 'w1', 'collection': 'submissions'},
            {'id': 'c2', 'user_id': 'w2', 'collection': 'submissions'},
            {'id': 'c3', 'user_id': 'w1'},
        ]}

        result = sync_connections(dynamo_backend, [self._record('w1')])

        assert result == {'connections': 2, 'refreshed': 1, 'dropped': 0}
        assert list(dynamo_backend.publisher.sent) == ['c1']
        assert dynamo_backend.publisher.sent['c1'][0]['items'][0]['id'] == 's1'
        assert dynamo_backend.store.subscriptions_for('submissions') == []

    def test_drops_stale_connections(self, dynamo_backend, tables):
        tables['connections'].scan.return_value = {'Items': [
            {'id': 'c1', 'user_id': 'w1', 'collection': 'submissions'},
            {'id': 'c9', 'user_id': 'deleted-user', 'collection': 'submissions'},
        ]}
        dynamo_backend.publisher.gone.add('c1')

        result = sync_connections(dynamo_backend, [self._record('w1')])

        assert result['dropped'] == 2
        deleted = {c.kwargs['Key']['id'] for c in tables['connections'].delete_item.call_args_list}
        assert deleted == {'c1', 'c9'}


class TestApiGatewayViewPublisher:
    """Tests for pushes through the API Gateway management API."""

    def test_push_serializes_decimals(self, config):
        client = MagicMock()
        publisher = ApiGatewayViewPublisher(config, client=client)

        assert publisher.push('c1', {'items': [{'amount': Decimal('12.5')}]}) is True
        data = client.post_to_connection.call_args.kwargs['Data']
        assert json.loads(data) == {'items': [{'amount': 12.5}]}

    def test_gone_connection(self, config):
        client = MagicMock()
        client.post_to_connection.side_effect = ClientError(
            {'Error': {'Code': 'GoneException', 'Message': 'gone'}}, 'PostToConnection')

        assert ApiGatewayViewPublisher(config, client=client).push('c1', {}) is False

    def test_other_failures(self, config):
        client = MagicMock()
        client.post_to_connection.side_effect = ClientError(
            {'Error': {'Code': 'LimitExceededException', 'Message': 'slow down'}}, 'PostToConnection')

        with pytest.raises(RemoteError):
            ApiGatewayViewPublisher(config, client=client).push('c1', {})


class TestViewHandlers:
    """Tests for the WebSocket route handlers."""

    def test_connect_watch_disconnect(self, backend, admin, assignment):
        token = _token(backend, admin, 'admin-secret')
        context = {'connectionId': 'conn-7'}

        response = connect_handler({'requestContext': context, 'queryStringParameters': {'token': token}}, None)
        assert response['statusCode'] == 200

        response = watch_handler({'requestContext': context,
                                  'body': json.dumps({'action': 'watch', 'collection': 'assignments'})}, None)
        assert response['statusCode'] == 200
        assert json.loads(response['body']) == {'collection': 'assignments', 'count': 1}

        response = disconnect_handler({'requestContext': context}, None)
        assert response['statusCode'] == 200
        assert backend.store.get(CONNECTIONS, 'conn-7') is None

    def test_connect_without_token(self, backend):
        response = connect_handler({'requestContext': {'connectionId': 'conn-7'}}, None)

        assert response['statusCode'] == 401
