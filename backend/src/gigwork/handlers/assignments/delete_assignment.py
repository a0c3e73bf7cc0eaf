"""
Delete Assignment Handler (admin).
DELETE /assignments/{assignmentId}
Existing submissions keep their (now dangling) assignment reference.
"""
from gigwork.shared.access import load_actor
from gigwork.shared.assignments import delete_assignment
from gigwork.shared.auth import get_user_sub
from gigwork.shared.backend import get_backend
from gigwork.shared.commands import DeleteAssignmentCommand
from gigwork.shared.utils import api_handler, format_response, get_path_param


@api_handler
def handler(event, context):
    backend = get_backend()
    actor = load_actor(backend, get_user_sub(event))

    command = DeleteAssignmentCommand(assignment_id=get_path_param(event, 'assignmentId'))
    deleted = delete_assignment(backend, actor, command)

    return format_response(200, {'message': 'Assignment deleted', 'assignmentId': deleted['id']})
