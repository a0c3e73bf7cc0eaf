"""
Review Submission Handler (admin).
POST /admin/submissions/{submissionId}/review
Body: { "decision": "approve" | "reject" }
Approval credits the assignment's payment to the worker in the same transaction.
"""
from gigwork.shared.access import load_actor
from gigwork.shared.auth import get_user_sub
from gigwork.shared.backend import get_backend
from gigwork.shared.commands import ReviewSubmissionCommand
from gigwork.shared.submissions import review_submission
from gigwork.shared.utils import api_handler, format_response, get_path_param, parse_body


@api_handler
def handler(event, context):
    backend = get_backend()
    actor = load_actor(backend, get_user_sub(event))

    command = ReviewSubmissionCommand.from_body(get_path_param(event, 'submissionId'), parse_body(event))
    submission = review_submission(backend, actor, command)

    return format_response(200, {'submission': submission})
