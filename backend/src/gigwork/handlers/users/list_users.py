"""
List Users Handler (admin).
GET /admin/users
"""
from gigwork.shared.access import load_actor
from gigwork.shared.auth import get_user_sub
from gigwork.shared.backend import get_backend
from gigwork.shared.registration import list_users
from gigwork.shared.utils import api_handler, format_response


@api_handler
def handler(event, context):
    backend = get_backend()
    actor = load_actor(backend, get_user_sub(event))
    users = list_users(backend, actor)

    return format_response(200, {
        'users': users,
        'totalUsers': len(users),
        'pendingUsers': len([u for u in users if not u.get('is_approved')])
    })
