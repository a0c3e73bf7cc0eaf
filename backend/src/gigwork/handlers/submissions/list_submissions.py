"""
List Submissions Handler.
GET /submissions?status=pending
Admins see all submissions, workers their own. Rows carry the assignment
title and worker name ('Unknown' once the referenced record is gone).
"""
from gigwork.shared.access import is_admin, load_actor
from gigwork.shared.auth import get_user_sub
from gigwork.shared.backend import get_backend
from gigwork.shared.dashboard import admin_submission_rows, worker_submission_rows
from gigwork.shared.submissions import list_submissions
from gigwork.shared.utils import api_handler, format_response, get_query_param


@api_handler
def handler(event, context):
    backend = get_backend()
    actor = load_actor(backend, get_user_sub(event))
    status = get_query_param(event, 'status')

    if is_admin(actor):
        rows = admin_submission_rows(backend, actor, status)
    else:
        rows = worker_submission_rows(backend, actor, list_submissions(backend, actor, status))

    return format_response(200, {'submissions': rows, 'totalSubmissions': len(rows)})
