"""
WebSocket $connect Handler.
wss://.../{stage}?token=<access token>
Registers the connection for an admin or an approved worker.
"""
from gigwork.shared.backend import get_backend
from gigwork.shared.connections import connect
from gigwork.shared.utils import api_handler, format_response, get_connection_id, get_query_param


@api_handler
def handler(event, context):
    connection = connect(get_backend(), get_connection_id(event), get_query_param(event, 'token'))
    return format_response(200, {'connectionId': connection['id']})
