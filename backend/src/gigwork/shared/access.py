"""
Role and approval checks applied before every workflow operation.
"""
from .errors import AuthError, ForbiddenError
from .models import PROFILES, Role


def load_actor(backend, user_id: str) -> dict:
    """Fetch the caller's profile. A session without a profile is not signed in."""
    if not user_id:
        raise AuthError('Not authenticated')
    profile = backend.store.get(PROFILES, user_id)
    if profile is None:
        raise AuthError('No profile found for this account')
    return profile


def is_admin(actor: dict) -> bool:
    return actor.get('role') == Role.ADMIN


def require_admin(actor: dict):
    if not is_admin(actor):
        raise ForbiddenError('Admin access required')


def require_approved_worker(actor: dict):
    if actor.get('role') != Role.WORKER:
        raise ForbiddenError('Worker access required')
    if not actor.get('is_approved'):
        raise ForbiddenError('Your account is pending approval')
