"""
Dashboard Handler.
GET /dashboard
Admin statistics or the worker's summary, depending on the caller's role.
"""
from gigwork.shared.access import is_admin, load_actor
from gigwork.shared.auth import get_user_sub
from gigwork.shared.backend import get_backend
from gigwork.shared.dashboard import admin_stats, worker_summary
from gigwork.shared.utils import api_handler, format_response


@api_handler
def handler(event, context):
    backend = get_backend()
    actor = load_actor(backend, get_user_sub(event))

    if is_admin(actor):
        return format_response(200, {'role': actor['role'], 'stats': admin_stats(backend, actor)})
    return format_response(200, {'role': actor['role'], 'summary': worker_summary(backend, actor)})
