"""
Common utility functions for Lambda handlers.
"""
import json
import functools
import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict

from .errors import GigworkError, ValidationError
from .logging import logger, log_event


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal types from DynamoDB."""

    def default(self, o):
        if isinstance(o, Decimal):
            # Convert to int if it's a whole number, otherwise float
            if o % 1 == 0:
                return int(o)
            return float(o)
        return super().default(o)


def format_response(
    status_code: int,
    body: Any,
    headers: Dict[str, str] = None
) -> Dict[str, Any]:
    """
    Format a standard API Gateway response with CORS headers.

    Args:
        status_code: HTTP status code
        body: Response body (will be JSON serialized)
        headers: Additional headers to include

    Returns:
        API Gateway response dict
    """
    default_headers = {
        'Access-Control-Allow-Origin': '*',
        'Access-Control-Allow-Credentials': True,
        'Content-Type': 'application/json'
    }

    if headers:
        default_headers.update(headers)

    return {
        'statusCode': status_code,
        'headers': default_headers,
        'body': json.dumps(body, cls=DecimalEncoder)
    }


def parse_body(event: dict) -> dict:
    """
    Parse JSON body from API Gateway event.

    Raises:
        ValidationError: If the body is not a JSON object
    """
    body = event.get('body') or '{}'
    if isinstance(body, dict):
        return body
    try:
        parsed = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        raise ValidationError('Invalid JSON body')
    if not isinstance(parsed, dict):
        raise ValidationError('JSON body must be an object')
    return parsed


def get_path_param(event: dict, param_name: str) -> str:
    """Extract path parameter from event."""
    try:
        return event['pathParameters'][param_name]
    except (KeyError, TypeError):
        return None


def get_connection_id(event: dict) -> str:
    """Extract the WebSocket connection id from event."""
    try:
        return event['requestContext']['connectionId']
    except (KeyError, TypeError):
        return None


def get_query_param(event: dict, param_name: str, default: str = None) -> str:
    """Extract query string parameter from event."""
    params = event.get('queryStringParameters') or {}
    return params.get(param_name, default)


def now_iso() -> str:
    """Current time as a timezone-aware ISO-8601 string."""
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def to_decimal(value: Any, field: str) -> Decimal:
    """Convert user input to Decimal, rejecting floats' binary noise and NaN."""
    if value is None or value == '' or isinstance(value, bool):
        raise ValidationError(f'Missing {field}')
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f'Invalid {field} format')
    if not amount.is_finite():
        raise ValidationError(f'Invalid {field} format')
    return amount


def api_handler(func: Callable) -> Callable:
    """
    Wrap a Lambda proxy handler: log the event, turn workflow errors into
    JSON error responses and anything unexpected into a 500.
    """
    @functools.wraps(func)
    def wrapper(event, context):
        log_event(event)
        try:
            return func(event, context)
        except GigworkError as e:
            if e.status_code >= 500:
                logger.error(f"{func.__module__}: {e.message}")
            else:
                logger.info(f"{func.__module__} rejected request: {e.message}")
            return format_response(e.status_code, {
                'error': type(e).__name__,
                'message': e.message
            })
        except Exception as e:
            logger.exception(f"Unhandled error in {func.__module__}: {e}")
            return format_response(500, {'message': 'Internal Server Error'})

    return wrapper
