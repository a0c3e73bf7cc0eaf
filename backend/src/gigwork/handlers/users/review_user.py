"""
Review User Handler (admin).
POST /admin/users/{userId}/review
Body: { "decision": "approve" | "reject" }
"""
from gigwork.shared.access import load_actor
from gigwork.shared.auth import get_user_sub
from gigwork.shared.backend import get_backend
from gigwork.shared.commands import user_review_command
from gigwork.shared.registration import review_user
from gigwork.shared.utils import api_handler, format_response, get_path_param, parse_body


@api_handler
def handler(event, context):
    backend = get_backend()
    actor = load_actor(backend, get_user_sub(event))

    command = user_review_command(get_path_param(event, 'userId'), parse_body(event).get('decision'))
    profile = review_user(backend, actor, command)

    return format_response(200, {'profile': profile})
