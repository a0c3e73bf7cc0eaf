"""
Sign In / Sign Out Handler.
POST /sessions    Body: { "email": "...", "password": "..." }
DELETE /sessions  Body: { "access_token": "..." }
"""
from gigwork.shared.backend import get_backend
from gigwork.shared.errors import ValidationError
from gigwork.shared.registration import sign_in, sign_out
from gigwork.shared.utils import api_handler, format_response, parse_body


@api_handler
def handler(event, context):
    body = parse_body(event)
    backend = get_backend()

    if event.get('httpMethod') == 'DELETE':
        access_token = body.get('access_token')
        if not access_token:
            raise ValidationError('Missing access_token')
        sign_out(backend, {'access_token': access_token})
        return format_response(200, {'message': 'Signed out'})

    result = sign_in(backend, body.get('email'), body.get('password'))
    return format_response(200, result)
