"""
Authentication utilities: Cognito claim extraction for API Gateway events
and the identity service adapters used for registration and sign-in.
"""
import hashlib
import secrets
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

import boto3

from .aws import AWS_ERRORS, client_error_code, remote_error
from .config import Config, config
from .errors import AuthError, DuplicateEmailError, ValidationError
from .logging import logger
from .store import new_id


def get_user_sub(event: dict) -> Optional[str]:
    """
    Extract user sub (unique ID) from Cognito authorizer claims.

    Args:
        event: API Gateway Lambda proxy event

    Returns:
        User sub string or None if not authenticated
    """
    try:
        return event['requestContext']['authorizer']['claims']['sub']
    except (KeyError, TypeError):
        return None


class IdentityService(ABC):
    """Account creation and sessions. Profiles live in the document store."""

    def __init__(self):
        self._listeners: List[Callable[[Optional[dict]], None]] = []

    @abstractmethod
    def create_account(self, email: str, password: str) -> str:
        """
        Create an account and return its user id.

        Raises:
            DuplicateEmailError: If the email is already registered
        """

    @abstractmethod
    def delete_account(self, user_id: str, email: str) -> None:
        """Remove an account created by a registration that could not finish."""

    @abstractmethod
    def user_for_token(self, access_token: str) -> str:
        """
        Resolve an access token to its user id.

        Raises:
            AuthError: If the token is unknown or expired
        """

    @abstractmethod
    def _authenticate(self, email: str, password: str) -> dict:
        pass

    @abstractmethod
    def _end_session(self, session: dict) -> None:
        pass

    def authenticate(self, email: str, password: str) -> dict:
        """
        Sign in and return a session dict with ``user_id`` and tokens.

        Raises:
            AuthError: On bad credentials
        """
        session = self._authenticate(email, password)
        self._emit(session)
        return session

    def end_session(self, session: dict) -> None:
        self._end_session(session)
        self._emit(None)

    def on_session_change(self, callback: Callable[[Optional[dict]], None]) -> Callable[[], None]:
        """
        Register a callback for sign-in (session dict) and sign-out (None).

        Returns:
            A function that removes the callback
        """
        self._listeners.append(callback)

        def unsubscribe():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _emit(self, session: Optional[dict]):
        for listener in list(self._listeners):
            listener(session)


class CognitoIdentityService(IdentityService):

    def __init__(self, cfg: Config = config, client=None):
        super().__init__()
        self.config = cfg
        self.cognito = client or boto3.client('cognito-idp', region_name=cfg.AWS_REGION)

    def create_account(self, email: str, password: str) -> str:
        try:
            response = self.cognito.sign_up(
                ClientId=self.config.USER_POOL_CLIENT_ID,
                Username=email,
                Password=password,
                UserAttributes=[{'Name': 'email', 'Value': email}]
            )
            if self.config.AUTO_CONFIRM_USERS:
                self.cognito.admin_confirm_sign_up(
                    UserPoolId=self.config.USER_POOL_ID,
                    Username=email
                )
        except AWS_ERRORS as e:
            code = client_error_code(e)
            if code == 'UsernameExistsException':
                raise DuplicateEmailError('An account with this email already exists')
            if code in ('InvalidPasswordException', 'InvalidParameterException'):
                raise ValidationError(e.response['Error'].get('Message', 'Invalid credentials'))
            raise remote_error('account creation', e)
        logger.info(f"Created Cognito account {response['UserSub']}")
        return response['UserSub']

    def delete_account(self, user_id: str, email: str) -> None:
        try:
            self.cognito.admin_delete_user(UserPoolId=self.config.USER_POOL_ID, Username=email)
        except AWS_ERRORS as e:
            raise remote_error('account deletion', e)

    def _authenticate(self, email: str, password: str) -> dict:
        try:
            response = self.cognito.initiate_auth(
                ClientId=self.config.USER_POOL_CLIENT_ID,
                AuthFlow='USER_PASSWORD_AUTH',
                AuthParameters={'USERNAME': email, 'PASSWORD': password}
            )
            tokens = response['AuthenticationResult']
            user = self.cognito.get_user(AccessToken=tokens['AccessToken'])
        except AWS_ERRORS as e:
            if client_error_code(e) in ('NotAuthorizedException', 'UserNotFoundException',
                                        'UserNotConfirmedException'):
                raise AuthError('Invalid email or password')
            raise remote_error('sign in', e)

        attributes = {a['Name']: a['Value'] for a in user.get('UserAttributes', [])}
        return {
            'user_id': attributes.get('sub', user.get('Username')),
            'email': attributes.get('email', email),
            'access_token': tokens['AccessToken'],
            'id_token': tokens.get('IdToken'),
            'refresh_token': tokens.get('RefreshToken'),
            'expires_in': tokens.get('ExpiresIn'),
        }

    def user_for_token(self, access_token: str) -> str:
        try:
            user = self.cognito.get_user(AccessToken=access_token)
        except AWS_ERRORS as e:
            if client_error_code(e) in ('NotAuthorizedException', 'UserNotFoundException'):
                raise AuthError('Session expired')
            raise remote_error('token lookup', e)
        attributes = {a['Name']: a['Value'] for a in user.get('UserAttributes', [])}
        return attributes.get('sub', user.get('Username'))

    def _end_session(self, session: dict) -> None:
        try:
            self.cognito.global_sign_out(AccessToken=session['access_token'])
        except AWS_ERRORS as e:
            if client_error_code(e) == 'NotAuthorizedException':
                raise AuthError('Session already expired')
            raise remote_error('sign out', e)


def _hash_password(password: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac('sha256', password.encode('utf-8'), salt, 100_000)


class InMemoryIdentityService(IdentityService):

    def __init__(self):
        super().__init__()
        self._lock = threading.Lock()
        self._accounts: Dict[str, dict] = {}
        self._tokens: Dict[str, str] = {}

    def create_account(self, email: str, password: str) -> str:
        email = email.lower()
        with self._lock:
            if email in self._accounts:
                raise DuplicateEmailError('An account with this email already exists')
            salt = secrets.token_bytes(16)
            user_id = new_id()
            self._accounts[email] = {
                'user_id': user_id,
                'salt': salt,
                'password_hash': _hash_password(password, salt),
            }
        return user_id

    def delete_account(self, user_id: str, email: str) -> None:
        with self._lock:
            self._accounts.pop(email.lower(), None)

    def _authenticate(self, email: str, password: str) -> dict:
        with self._lock:
            account = self._accounts.get((email or '').lower())
        if account is None or not secrets.compare_digest(
                _hash_password(password or '', account['salt']), account['password_hash']):
            raise AuthError('Invalid email or password')
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._tokens[token] = account['user_id']
        return {'user_id': account['user_id'], 'email': email.lower(), 'access_token': token}

    def _end_session(self, session: dict) -> None:
        with self._lock:
            if self._tokens.pop(session.get('access_token'), None) is None:
                raise AuthError('Session already expired')

    def user_for_token(self, access_token: str) -> str:
        with self._lock:
            user_id = self._tokens.get(access_token)
        if user_id is None:
            raise AuthError('Session expired')
        return user_id
