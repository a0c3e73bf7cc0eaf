"""
Create Admin Handler.
Invoked directly (console / CLI), never through API Gateway:

    aws lambda invoke --function-name CreateAdmin \
        --payload '{"email": "...", "password": "...", "fullName": "...", "phone": "..."}' out.json
"""
from gigwork.shared.backend import get_backend
from gigwork.shared.errors import GigworkError
from gigwork.shared.logging import logger
from gigwork.shared.registration import create_admin


def handler(event, context):
    try:
        profile = create_admin(
            get_backend(),
            email=event.get('email'),
            password=event.get('password'),
            full_name=event.get('fullName') or 'Admin User',
            phone=event.get('phone') or ''
        )
    except GigworkError as e:
        logger.error(f"Admin creation failed: {e.message}")
        return {'error': e.message}

    return {'created': True, 'userId': profile['id'], 'email': profile['email']}
