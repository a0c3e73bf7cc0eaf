"""
Tests for registration, the approval gate and sign-in.
"""
import pytest
from unittest.mock import MagicMock
from decimal import Decimal

from conftest import uploaded
from gigwork.shared.access import load_actor
from gigwork.shared.commands import ApproveUserCommand, RegisterWorkerCommand, RejectUserCommand
from gigwork.shared.errors import (
    AuthError,
    DuplicateEmailError,
    ForbiddenError,
    GigworkError,
    ValidationError,
)
from gigwork.shared.models import PROFILES, Role
from gigwork.shared.registration import (
    approve_user,
    create_admin,
    list_users,
    register_worker,
    reject_user,
    sign_in,
    sign_out,
)


def _command(**overrides):
    fields = dict(
        full_name='Sara Ahmed',
        email='sara@example.com',
        phone='03001112222',
        password='secret123',
    )
    fields.update(overrides)
    return RegisterWorkerCommand(**fields)


class TestRegisterWorker:
    """Tests for worker registration."""

    def test_new_worker_is_pending(self, backend):
        """A fresh worker profile starts unapproved with zero earnings."""
        profile = register_worker(backend, _command())

        stored = backend.store.get(PROFILES, profile['id'])
        assert stored['role'] == Role.WORKER
        assert stored['is_approved'] is False
        assert stored['total_earnings'] == Decimal('0')
        assert stored['email'] == 'sara@example.com'

    def test_optional_fields_and_screenshot(self, backend):
        """Optional details are kept and the payment proof is stored."""
        profile = register_worker(backend, _command(
            city='Lahore',
            qualification='BSc',
            payment_screenshot=uploaded('proof.png', b'png-bytes', 'image/png'),
        ))

        assert profile['city'] == 'Lahore'
        assert profile['qualification'] == 'BSc'
        assert 'father_name' not in profile
        assert backend.blobs.read(profile['payment_screenshot_url']) == b'png-bytes'

    def test_duplicate_email_rejected(self, backend):
        """Registering the same email twice fails and leaves one profile."""
        register_worker(backend, _command())

        with pytest.raises(DuplicateEmailError):
            register_worker(backend, _command(full_name='Someone Else'))

        assert len(backend.store.query(PROFILES)) == 1

    def test_duplicate_email_releases_screenshot(self, backend):
        """A failed account creation does not leave an orphaned upload."""
        register_worker(backend, _command())

        with pytest.raises(DuplicateEmailError):
            register_worker(backend, _command(payment_screenshot=uploaded('proof.png')))

        assert backend.blobs.files == {}

    @pytest.mark.parametrize('overrides', [
        {'email': 'not-an-email'},
        {'password': '123'},
        {'full_name': '  '},
        {'phone': None},
    ])
    def test_invalid_input_rejected_before_remote_calls(self, backend, overrides):
        """Validation fails fast and creates nothing."""
        with pytest.raises(ValidationError):
            register_worker(backend, _command(**overrides))

        assert backend.store.query(PROFILES) == []

    def test_profile_failure_removes_account(self, backend):
        """If the profile cannot be written, the account is deleted again."""
        backend.store.create = MagicMock(side_effect=GigworkError('store down'))

        with pytest.raises(GigworkError):
            register_worker(backend, _command())

        with pytest.raises(AuthError):
            backend.identity.authenticate('sara@example.com', 'secret123')

    def test_admin_profile_failure_removes_account(self, backend):
        backend.store.create = MagicMock(side_effect=GigworkError('store down'))

        with pytest.raises(GigworkError):
            create_admin(backend, 'root@example.com', 'admin-secret')

        with pytest.raises(AuthError):
            backend.identity.authenticate('root@example.com', 'admin-secret')


class TestApprovalGate:
    """Tests for approve/reject of users."""

    def test_approve_sets_flag(self, backend, admin):
        profile = register_worker(backend, _command())

        approved = approve_user(backend, admin, ApproveUserCommand(user_id=profile['id']))

        assert approved['is_approved'] is True
        assert 'approved_at' in approved

    def test_approve_is_idempotent(self, backend, admin):
        """Approving twice equals approving once."""
        profile = register_worker(backend, _command())

        first = approve_user(backend, admin, ApproveUserCommand(user_id=profile['id']))
        second = approve_user(backend, admin, ApproveUserCommand(user_id=profile['id']))

        assert first == second

    def test_reject_never_approves(self, backend, admin):
        profile = register_worker(backend, _command())

        rejected = reject_user(backend, admin, RejectUserCommand(user_id=profile['id']))

        assert rejected['is_approved'] is False

    def test_reject_revokes_approval(self, backend, admin, worker):
        rejected = reject_user(backend, admin, RejectUserCommand(user_id=worker['id']))

        assert rejected['is_approved'] is False

    def test_admin_accounts_are_not_reviewable(self, backend, admin):
        """Rejecting or approving an admin is refused and leaves the admin approved."""
        with pytest.raises(ValidationError):
            reject_user(backend, admin, RejectUserCommand(user_id=admin['id']))
        with pytest.raises(ValidationError):
            approve_user(backend, admin, ApproveUserCommand(user_id=admin['id']))

        assert backend.store.get(PROFILES, admin['id'])['is_approved'] is True

    def test_worker_cannot_approve(self, backend, worker):
        pending = register_worker(backend, _command())

        with pytest.raises(ForbiddenError):
            approve_user(backend, worker, ApproveUserCommand(user_id=pending['id']))

    def test_unknown_user(self, backend, admin):
        with pytest.raises(GigworkError) as exc_info:
            approve_user(backend, admin, ApproveUserCommand(user_id='missing'))

        assert exc_info.value.status_code == 404

    def test_list_users_admin_only(self, backend, admin, worker):
        users = list_users(backend, admin)
        assert {u['id'] for u in users} == {admin['id'], worker['id']}

        with pytest.raises(ForbiddenError):
            list_users(backend, worker)


class TestSessions:
    """Tests for sign-in, sign-out and session listeners."""

    def test_sign_in_returns_profile(self, backend):
        profile = register_worker(backend, _command())

        result = sign_in(backend, 'Sara@Example.com', 'secret123')

        assert result['session']['user_id'] == profile['id']
        assert result['profile']['id'] == profile['id']

    def test_wrong_password(self, backend):
        register_worker(backend, _command())

        with pytest.raises(AuthError):
            sign_in(backend, 'sara@example.com', 'wrong-password')

    def test_session_listener(self, backend):
        """Listeners see the session on sign-in and None on sign-out."""
        register_worker(backend, _command())
        seen = []
        unsubscribe = backend.identity.on_session_change(seen.append)

        result = sign_in(backend, 'sara@example.com', 'secret123')
        sign_out(backend, result['session'])
        unsubscribe()
        sign_in(backend, 'sara@example.com', 'secret123')

        assert seen == [result['session'], None]

    def test_load_actor_without_profile(self, backend):
        with pytest.raises(AuthError):
            load_actor(backend, None)
        with pytest.raises(AuthError):
            load_actor(backend, 'no-such-user')
