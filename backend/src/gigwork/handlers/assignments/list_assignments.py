"""
List Assignments Handler.
GET /assignments
Admins get every assignment; approved workers get the ones offered to them,
each annotated with the status of their latest submission.
"""
from gigwork.shared.access import is_admin, load_actor
from gigwork.shared.assignments import list_assignments
from gigwork.shared.auth import get_user_sub
from gigwork.shared.backend import get_backend
from gigwork.shared.submissions import current_submission, list_submissions
from gigwork.shared.utils import api_handler, format_response


@api_handler
def handler(event, context):
    backend = get_backend()
    actor = load_actor(backend, get_user_sub(event))
    assignments = list_assignments(backend, actor)

    if not is_admin(actor):
        submissions = list_submissions(backend, actor)
        for assignment in assignments:
            latest = current_submission(submissions, assignment['id'])
            assignment['submission_status'] = latest['status'] if latest else None

    return format_response(200, {
        'assignments': assignments,
        'totalAssignments': len(assignments)
    })
