"""
WebSocket $disconnect Handler.
"""
from gigwork.shared.backend import get_backend
from gigwork.shared.connections import disconnect
from gigwork.shared.utils import api_handler, format_response, get_connection_id


@api_handler
def handler(event, context):
    disconnect(get_backend(), get_connection_id(event))
    return format_response(200, {'message': 'Disconnected'})
