"""
WebSocket "watch" route Handler.
Message: { "action": "watch", "collection": "assignments" | "submissions" |
           "withdrawals" | "profiles" }
Points the connection at a collection and pushes the current snapshot.
Later snapshots arrive through the stream sync handler.
"""
from gigwork.shared.backend import get_backend
from gigwork.shared.connections import watch
from gigwork.shared.utils import api_handler, format_response, get_connection_id, parse_body


@api_handler
def handler(event, context):
    body = parse_body(event)
    items = watch(get_backend(), get_connection_id(event), body.get('collection'))
    return format_response(200, {'collection': body.get('collection'), 'count': len(items)})
