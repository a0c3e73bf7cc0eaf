"""
Configuration module for Lambda handlers.
Loads all environment variables needed by the platform.
"""
import os


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Centralized configuration from environment variables."""

    # Adapter set: 'aws' (DynamoDB + S3 + Cognito) or 'memory'
    BACKEND = os.environ.get('BACKEND', 'aws')

    # AWS Region
    AWS_REGION = os.environ.get('AWS_REGION', 'us-east-1')

    # DynamoDB Tables
    PROFILES_TABLE = os.environ.get('PROFILES_TABLE', 'profiles')
    ASSIGNMENTS_TABLE = os.environ.get('ASSIGNMENTS_TABLE', 'assignments')
    SUBMISSIONS_TABLE = os.environ.get('SUBMISSIONS_TABLE', 'submissions')
    WITHDRAWALS_TABLE = os.environ.get('WITHDRAWALS_TABLE', 'withdrawals')
    CONNECTIONS_TABLE = os.environ.get('CONNECTIONS_TABLE', 'connections')

    # GSI on worker_id for submissions and withdrawals
    WORKER_INDEX = os.environ.get('WORKER_INDEX', 'WorkerIndex')

    # S3 Buckets
    MEDIA_BUCKET = os.environ.get('MEDIA_BUCKET', '')
    DOWNLOAD_URL_EXPIRATION = int(os.environ.get('DOWNLOAD_URL_EXPIRATION', '3600'))

    # Cognito
    USER_POOL_ID = os.environ.get('USER_POOL_ID', '')
    USER_POOL_CLIENT_ID = os.environ.get('USER_POOL_CLIENT_ID', '')
    AUTO_CONFIRM_USERS = _env_flag('AUTO_CONFIRM_USERS', 'true')

    # Registration & uploads
    MIN_PASSWORD_LENGTH = int(os.environ.get('MIN_PASSWORD_LENGTH', '6'))
    MAX_UPLOAD_BYTES = int(os.environ.get('MAX_UPLOAD_BYTES', str(10 * 1024 * 1024)))
    SUBMISSION_EXTENSIONS = tuple(
        ext.strip().lower().lstrip('.')
        for ext in os.environ.get('SUBMISSION_EXTENSIONS', 'pdf,doc,docx').split(',')
        if ext.strip()
    )

    # Workflow switches
    ALLOW_RESUBMISSION = _env_flag('ALLOW_RESUBMISSION', 'true')
    WORKERS_SEE_ACTIVE_ONLY = _env_flag('WORKERS_SEE_ACTIVE_ONLY', 'true')

    # Live views, pushed over the WebSocket API
    WEBSOCKET_ENDPOINT = os.environ.get('WEBSOCKET_ENDPOINT', '')
    RESUBSCRIBE_ATTEMPTS = int(os.environ.get('RESUBSCRIBE_ATTEMPTS', '3'))

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    def table_for(self, collection: str) -> str:
        """Map a canonical collection name to its DynamoDB table."""
        return {
            'profiles': self.PROFILES_TABLE,
            'assignments': self.ASSIGNMENTS_TABLE,
            'submissions': self.SUBMISSIONS_TABLE,
            'withdrawals': self.WITHDRAWALS_TABLE,
            'connections': self.CONNECTIONS_TABLE,
        }[collection]


config = Config()
