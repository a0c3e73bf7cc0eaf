"""
Submit Work Handler.
POST /submissions
Body: { "assignment_id": "...", "file": {"name", "content", "contentType"} }
"""
from gigwork.shared.access import load_actor
from gigwork.shared.auth import get_user_sub
from gigwork.shared.backend import get_backend
from gigwork.shared.commands import SubmitWorkCommand
from gigwork.shared.submissions import submit_work
from gigwork.shared.utils import api_handler, format_response, parse_body


@api_handler
def handler(event, context):
    backend = get_backend()
    actor = load_actor(backend, get_user_sub(event))

    command = SubmitWorkCommand.from_body(parse_body(event))
    submission = submit_work(backend, actor, command)

    return format_response(201, {
        'message': 'Work submitted successfully',
        'submission': submission
    })
