"""
Register Worker Handler.
POST /register
Body: { "full_name", "email", "phone", "password", "father_name", "city",
        "qualification", "job", "payment_screenshot": {"name", "content", "contentType"} }
"""
from gigwork.shared.backend import get_backend
from gigwork.shared.commands import RegisterWorkerCommand
from gigwork.shared.registration import register_worker
from gigwork.shared.utils import api_handler, format_response, parse_body


@api_handler
def handler(event, context):
    command = RegisterWorkerCommand.from_body(parse_body(event))
    profile = register_worker(get_backend(), command)

    return format_response(201, {
        'message': 'Registration received. Your account is pending approval.',
        'profile': profile
    })
