"""
Helpers shared by the AWS adapters.
"""
from botocore.exceptions import BotoCoreError, ClientError

from .errors import RemoteError
from .logging import logger


def client_error_code(error: Exception) -> str:
    """Return the AWS error code of a ClientError, or '' for anything else."""
    if isinstance(error, ClientError):
        return error.response.get('Error', {}).get('Code', '')
    return ''


def remote_error(action: str, error: Exception) -> RemoteError:
    """Log a backing service failure and wrap it for the caller."""
    code = client_error_code(error) or type(error).__name__
    logger.error(f"Error during {action}: {error}")
    return RemoteError(f'{action} failed ({code})')


AWS_ERRORS = (ClientError, BotoCoreError)
