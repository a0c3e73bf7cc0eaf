"""
Assignment Download Handler.
GET /assignments/{assignmentId}/download
Returns a presigned link to the assignment file.
"""
from gigwork.shared.access import load_actor
from gigwork.shared.assignments import download_url
from gigwork.shared.auth import get_user_sub
from gigwork.shared.backend import get_backend
from gigwork.shared.utils import api_handler, format_response, get_path_param


@api_handler
def handler(event, context):
    backend = get_backend()
    actor = load_actor(backend, get_user_sub(event))
    assignment_id = get_path_param(event, 'assignmentId')

    return format_response(200, {
        'assignmentId': assignment_id,
        'downloadUrl': download_url(backend, actor, assignment_id),
        'expiresIn': backend.config.DOWNLOAD_URL_EXPIRATION
    })
