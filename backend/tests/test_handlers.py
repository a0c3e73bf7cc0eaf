"""
Tests for the API Gateway handlers over the in-memory backend.
"""
import json
import pytest
from unittest.mock import MagicMock, patch

from conftest import file_payload
from gigwork.handlers.assignments.list_assignments import handler as list_assignments
from gigwork.handlers.assignments.publish_assignment import handler as publish_assignment
from gigwork.handlers.assignments.update_assignment import handler as update_assignment
from gigwork.handlers.dashboard.get_dashboard import handler as get_dashboard
from gigwork.handlers.streams.sync_views import handler as sync_views
from gigwork.handlers.submissions.list_submissions import handler as list_submissions
from gigwork.handlers.submissions.review_submission import handler as review_submission
from gigwork.handlers.submissions.submit_work import handler as submit_work
from gigwork.handlers.users.create_admin import handler as create_admin
from gigwork.handlers.users.register import handler as register
from gigwork.handlers.users.review_user import handler as review_user
from gigwork.handlers.users.sign_in import handler as sign_in
from gigwork.handlers.withdrawals.list_withdrawals import handler as list_withdrawals
from gigwork.handlers.withdrawals.request_withdrawal import handler as request_withdrawal
from gigwork.handlers.withdrawals.settle_withdrawal import handler as settle_withdrawal


def api_event(user_id=None, body=None, path=None, query=None, method='POST'):
    event = {
        'httpMethod': method,
        'body': json.dumps(body) if body is not None else None,
        'pathParameters': path,
        'queryStringParameters': query,
    }
    if user_id:
        event['requestContext'] = {'authorizer': {'claims': {'sub': user_id}}}
    return event


def call(handler, event):
    response = handler(event, None)
    return response['statusCode'], json.loads(response['body'])


class TestUserHandlers:
    """Tests for registration, sign-in and user review endpoints."""

    def test_register_then_sign_in(self, backend):
        status, body = call(register, api_event(body={
            'full_name': 'Ali Khan', 'email': 'ali@example.com', 'phone': '0300',
            'password': 'secret123', 'payment_screenshot': file_payload('proof.png'),
        }))
        assert status == 201
        assert body['profile']['is_approved'] is False

        status, body = call(sign_in, api_event(body={'email': 'ali@example.com', 'password': 'secret123'}))
        assert status == 200
        assert body['session']['access_token']

        status, _ = call(sign_in, api_event(body={'access_token': body['session']['access_token']},
                                            method='DELETE'))
        assert status == 200

    def test_register_duplicate(self, backend, worker):
        status, body = call(register, api_event(body={
            'full_name': 'Again', 'email': worker['email'], 'phone': '0300', 'password': 'secret123',
        }))

        assert status == 409
        assert body['error'] == 'DuplicateEmailError'

    def test_register_bad_json(self, backend):
        status, body = call(register, {'body': '{broken'})

        assert status == 400
        assert body['error'] == 'ValidationError'

    def test_sign_in_wrong_password(self, backend, worker):
        status, _ = call(sign_in, api_event(body={'email': worker['email'], 'password': 'nope'}))

        assert status == 401

    def test_review_user(self, backend, admin, make_worker):
        pending = make_worker(approved=False)

        status, body = call(review_user, api_event(admin['id'], {'decision': 'approve'},
                                                   {'userId': pending['id']}))

        assert status == 200
        assert body['profile']['is_approved'] is True

    def test_review_user_requires_admin(self, backend, worker, make_worker):
        pending = make_worker(approved=False)

        status, _ = call(review_user, api_event(worker['id'], {'decision': 'approve'},
                                                {'userId': pending['id']}))

        assert status == 403

    def test_unauthenticated(self, backend):
        status, body = call(list_assignments, api_event(method='GET'))

        assert status == 401
        assert body['error'] == 'AuthError'

    def test_create_admin_direct_invoke(self, backend):
        result = create_admin({'email': 'boss@example.com', 'password': 'secret123'}, None)

        assert result['created'] is True
        assert create_admin({'email': 'boss@example.com', 'password': 'secret123'}, None) == {
            'error': 'An account with this email already exists'
        }


class TestWorkflowHandlers:
    """The full worker lifecycle through the HTTP surface."""

    def test_lifecycle(self, backend, admin, worker):
        status, body = call(publish_assignment, api_event(admin['id'], {
            'title': 'Essay', 'description': 'Write', 'payment_amount': 50, 'file': file_payload('brief.pdf'),
        }))
        assert status == 201
        assignment_id = body['assignment']['id']

        status, body = call(list_assignments, api_event(worker['id'], method='GET'))
        assert status == 200
        assert body['assignments'][0]['submission_status'] is None

        status, body = call(submit_work, api_event(worker['id'], {
            'assignment_id': assignment_id, 'file': file_payload('answer.docx'),
        }))
        assert status == 201
        submission_id = body['submission']['id']

        status, body = call(list_submissions, api_event(admin['id'], method='GET', query={'status': 'pending'}))
        assert [s['assignment_title'] for s in body['submissions']] == ['Essay']

        status, body = call(review_submission, api_event(admin['id'], {'decision': 'approve'},
                                                         {'submissionId': submission_id}))
        assert status == 200
        assert body['submission']['status'] == 'approved'

        status, body = call(review_submission, api_event(admin['id'], {'decision': 'approve'},
                                                         {'submissionId': submission_id}))
        assert status == 409
        assert body['error'] == 'InvalidStateError'

        status, body = call(request_withdrawal, api_event(worker['id'], {
            'amount': 60, 'payment_method': 'easypaisa', 'payment_details': '0300',
        }))
        assert status == 400
        assert body['error'] == 'InsufficientBalanceError'

        status, body = call(request_withdrawal, api_event(worker['id'], {
            'amount': 50, 'payment_method': 'easypaisa', 'payment_details': '0300',
        }))
        assert status == 201
        assert body['availableBalance'] == 0
        withdrawal_id = body['withdrawal']['id']

        status, body = call(settle_withdrawal, api_event(admin['id'], {'decision': 'approve'},
                                                         {'withdrawalId': withdrawal_id}))
        assert status == 200
        assert body['withdrawal']['status'] == 'approved'

        status, body = call(list_withdrawals, api_event(worker['id'], method='GET'))
        assert body['totalEarnings'] == 50
        assert body['availableBalance'] == 0

        status, body = call(get_dashboard, api_event(worker['id'], method='GET'))
        assert body['summary']['approvedSubmissions'] == 1
        assert body['summary']['totalEarnings'] == 50

        status, body = call(get_dashboard, api_event(admin['id'], method='GET'))
        assert body['stats']['totalUsers'] == 2
        assert body['stats']['pendingWithdrawals'] == 0

    def test_status_toggle(self, backend, admin, assignment):
        status, body = call(update_assignment, api_event(admin['id'], {'status': 'inactive'},
                                                         {'assignmentId': assignment['id']}, method='PATCH'))

        assert status == 200
        assert body['assignment']['status'] == 'inactive'

    def test_non_text_fields_are_400(self, backend, admin, worker):
        status, body = call(publish_assignment, api_event(admin['id'], {
            'title': 123, 'payment_amount': 50, 'file': file_payload('brief.pdf'),
        }))
        assert status == 400
        assert body['error'] == 'ValidationError'

        status, body = call(request_withdrawal, api_event(worker['id'], {
            'amount': 10, 'payment_method': 'easypaisa', 'payment_details': 12345,
        }))
        assert status == 400
        assert body['error'] == 'ValidationError'

    def test_unexpected_error_is_500(self, backend, worker):
        with patch('gigwork.handlers.dashboard.get_dashboard.worker_summary',
                   side_effect=RuntimeError('boom')):
            status, body = call(get_dashboard, api_event(worker['id'], method='GET'))

        assert status == 500
        assert body == {'message': 'Internal Server Error'}


class TestSyncViews:
    """Tests for the stream handler."""

    def test_pushes_to_connections(self):
        store = MagicMock()
        with patch('gigwork.handlers.streams.sync_views.get_backend') as get_backend, \
                patch('gigwork.handlers.streams.sync_views.sync_connections') as sync_connections:
            get_backend.return_value.store = store
            sync_connections.return_value = {'connections': 4, 'refreshed': 3, 'dropped': 1}
            result = sync_views({'Records': [{}, {}]}, None)

        sync_connections.assert_called_once_with(get_backend.return_value, [{}, {}])
        assert result == {'processed': 2, 'connections': 4, 'refreshed': 3, 'dropped': 1}

    def test_store_without_streams(self, backend):
        assert sync_views({'Records': [{}]}, None) == {'processed': 1, 'refreshed': 0}

    def test_empty_batch(self):
        assert sync_views({}, None) == {'processed': 0, 'refreshed': 0}
