"""
Publish Assignment Handler (admin).
POST /assignments
Body: { "title", "description", "payment_amount", "status",
        "file": {"name", "content", "contentType"} }
"""
from gigwork.shared.access import load_actor
from gigwork.shared.assignments import publish_assignment
from gigwork.shared.auth import get_user_sub
from gigwork.shared.backend import get_backend
from gigwork.shared.commands import PublishAssignmentCommand
from gigwork.shared.utils import api_handler, format_response, parse_body


@api_handler
def handler(event, context):
    backend = get_backend()
    actor = load_actor(backend, get_user_sub(event))

    command = PublishAssignmentCommand.from_body(parse_body(event))
    assignment = publish_assignment(backend, actor, command)

    return format_response(201, {'assignment': assignment})
