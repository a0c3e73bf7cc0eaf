"""
Update Assignment Handler (admin).
PATCH /assignments/{assignmentId}
Body: any of { "title", "description", "payment_amount", "status", "file" }
A body carrying only "status" is a status toggle.
"""
from gigwork.shared.access import load_actor
from gigwork.shared.assignments import set_assignment_status, update_assignment
from gigwork.shared.auth import get_user_sub
from gigwork.shared.backend import get_backend
from gigwork.shared.commands import SetAssignmentStatusCommand, UpdateAssignmentCommand
from gigwork.shared.utils import api_handler, format_response, get_path_param, parse_body


@api_handler
def handler(event, context):
    backend = get_backend()
    actor = load_actor(backend, get_user_sub(event))
    assignment_id = get_path_param(event, 'assignmentId')
    body = parse_body(event)

    if set(body) == {'status'}:
        command = SetAssignmentStatusCommand(assignment_id=assignment_id, status=body['status'])
        assignment = set_assignment_status(backend, actor, command)
    else:
        command = UpdateAssignmentCommand.from_body(assignment_id, body)
        assignment = update_assignment(backend, actor, command)

    return format_response(200, {'assignment': assignment})
