"""
Registration and the approval gate.

Workers register into ``is_approved = False``; only an admin can flip the
flag. Every worker operation elsewhere checks it.
"""
from decimal import Decimal

from .access import require_admin
from .blob_store import storage_path
from .commands import ApproveUserCommand, RegisterWorkerCommand, RejectUserCommand, is_valid_email
from .errors import GigworkError, NotFoundError, ValidationError
from .logging import logger
from .models import PROFILES, Role
from .utils import now_iso


def register_worker(backend, command: RegisterWorkerCommand) -> dict:
    """
    Create a worker account and its pending profile.

    The payment screenshot is stored first; if the account or profile cannot
    be created, whatever was already created is released again.
    """
    command.validate(backend.config)

    screenshot_url = None
    if command.payment_screenshot:
        proof = command.payment_screenshot
        screenshot_url = backend.blobs.upload(
            storage_path('payments', proof.safe_name), proof.content, proof.content_type
        )

    try:
        user_id = backend.identity.create_account(command.email, command.password)
    except GigworkError:
        if screenshot_url:
            backend.blobs.delete(screenshot_url)
        raise

    profile = {
        'id': user_id,
        'full_name': command.full_name.strip(),
        'email': command.email,
        'phone': command.phone.strip(),
        'role': Role.WORKER,
        'is_approved': False,
        'total_earnings': Decimal('0'),
        'withdrawal_version': 0,
        'created_at': now_iso(),
    }
    optional = {
        'father_name': command.father_name,
        'city': command.city,
        'qualification': command.qualification,
        'job': command.job,
        'payment_screenshot_url': screenshot_url,
    }
    profile.update({k: v for k, v in optional.items() if v})

    try:
        backend.store.create(PROFILES, profile)
    except GigworkError:
        logger.error(f"Profile creation failed for {user_id}, removing account")
        backend.identity.delete_account(user_id, command.email)
        if screenshot_url:
            backend.blobs.delete(screenshot_url)
        raise

    logger.info(f"Registered worker {user_id} (pending approval)")
    return profile


def create_admin(backend, email: str, password: str, full_name: str = 'Admin User',
                 phone: str = '') -> dict:
    """Bootstrap an approved admin account."""
    email = (email or '').strip().lower()
    if not is_valid_email(email):
        raise ValidationError('Invalid email format')
    if len(password or '') < backend.config.MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f'Password must be at least {backend.config.MIN_PASSWORD_LENGTH} characters'
        )

    user_id = backend.identity.create_account(email, password)
    profile = {
        'id': user_id,
        'full_name': full_name,
        'email': email,
        'phone': phone,
        'role': Role.ADMIN,
        'is_approved': True,
        'total_earnings': Decimal('0'),
        'withdrawal_version': 0,
        'created_at': now_iso(),
    }
    try:
        backend.store.create(PROFILES, profile)
    except GigworkError:
        logger.error(f"Admin profile creation failed for {user_id}, removing account")
        backend.identity.delete_account(user_id, email)
        raise
    logger.info(f"Created admin {user_id}")
    return profile


def _get_worker(backend, user_id: str) -> dict:
    """Only worker accounts go through the approval gate."""
    profile = backend.store.get(PROFILES, user_id)
    if profile is None:
        raise NotFoundError('User not found')
    if profile.get('role') != Role.WORKER:
        raise ValidationError('Only worker accounts can be approved or rejected')
    return profile


def approve_user(backend, actor: dict, command: ApproveUserCommand) -> dict:
    """Approve a user. Approving an approved user is a no-op."""
    require_admin(actor)
    command.validate(backend.config)

    profile = _get_worker(backend, command.user_id)
    if profile.get('is_approved'):
        return profile

    profile = backend.store.update(
        PROFILES, command.user_id,
        set_fields={'is_approved': True, 'approved_at': now_iso()}
    )
    logger.info(f"User {command.user_id} approved by {actor['id']}")
    return profile


def reject_user(backend, actor: dict, command: RejectUserCommand) -> dict:
    """Revoke (or refuse) approval. Never sets ``is_approved``."""
    require_admin(actor)
    command.validate(backend.config)

    profile = _get_worker(backend, command.user_id)
    if not profile.get('is_approved'):
        return profile

    profile = backend.store.update(
        PROFILES, command.user_id,
        set_fields={'is_approved': False}
    )
    logger.info(f"User {command.user_id} rejected by {actor['id']}")
    return profile


def review_user(backend, actor: dict, command) -> dict:
    if isinstance(command, ApproveUserCommand):
        return approve_user(backend, actor, command)
    return reject_user(backend, actor, command)


def sign_in(backend, email: str, password: str) -> dict:
    """Authenticate and return the session together with the caller's profile."""
    if not email or not password:
        raise ValidationError('Missing email or password')
    session = backend.identity.authenticate(email.strip().lower(), password)
    profile = backend.store.get(PROFILES, session['user_id'])
    return {'session': session, 'profile': profile}


def sign_out(backend, session: dict) -> None:
    backend.identity.end_session(session)


def list_users(backend, actor: dict) -> list:
    require_admin(actor)
    return backend.store.query(PROFILES, order_by='created_at', descending=True)
