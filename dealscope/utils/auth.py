"""
Authentication utilities for JWT handling and role checks.
"""

import os
import jwt
import bcrypt
from functools import wraps
from datetime import datetime, timedelta
from typing import Dict, Any, Optional, Callable

from dealscope.utils.response import unauthorized_response, forbidden_response


ROLES = ('investor', 'analyst')


class JWTManager:
    """JWT token management."""

    def __init__(self):
        self.secret_key = os.getenv('JWT_SECRET_KEY', 'dealscope-dev-secret-change-in-production')
        self.algorithm = 'HS256'
        self.access_token_expires = timedelta(hours=24)
        self.refresh_token_expires = timedelta(days=30)

    def create_access_token(self, user_id: str, role: str, email: Optional[str] = None) -> str:
        """Create an access token."""
        payload = {
            'sub': user_id,
            'role': role,
            'email': email,
            'exp': datetime.utcnow() + self.access_token_expires,
            'iat': datetime.utcnow(),
            'type': 'access'
        }

        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def create_refresh_token(self, user_id: str) -> str:
        """Create a refresh token."""
        payload = {
            'sub': user_id,
            'exp': datetime.utcnow() + self.refresh_token_expires,
            'iat': datetime.utcnow(),
            'type': 'refresh'
        }

        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Optional[Dict[str, Any]]:
        """Verify and decode a token."""
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None

    def extract_user_from_token(self, token: str) -> Optional[Dict[str, Any]]:
        """Extract user information from a valid access token."""
        payload = self.verify_token(token)

        if not payload or payload.get('type') != 'access':
            return None

        return {
            'user_id': payload.get('sub'),
            'role': payload.get('role'),
            'email': payload.get('email')
        }


class PasswordManager:
    """Password hashing and verification."""

    @staticmethod
    def hash_password(password: str) -> str:
        """Hash a password."""
        salt = bcrypt.gensalt()
        hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
        return hashed.decode('utf-8')

    @staticmethod
    def verify_password(password: str, hashed: Optional[str]) -> bool:
        """Verify a password against its hash."""
        if not hashed:
            return False
        return bcrypt.checkpw(password.encode('utf-8'), hashed.encode('utf-8'))


def extract_token_from_event(event: Dict[str, Any]) -> Optional[str]:
    """Extract JWT token from Lambda event."""
    headers = event.get('headers') or {}
    auth_header = headers.get('Authorization') or headers.get('authorization')

    if auth_header and auth_header.startswith('Bearer '):
        return auth_header[7:]

    return None


def get_user_from_event(event: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Extract the caller from the authorizer context.

    Falls back to the Bearer token when the route has no authorizer attached
    (ALB deployments and the report function).
    """
    request_context = event.get('requestContext') or {}
    authorizer = request_context.get('authorizer') or {}

    if authorizer.get('user_id'):
        return {
            'user_id': authorizer['user_id'],
            'role': authorizer.get('role'),
            'email': authorizer.get('email')
        }

    token = extract_token_from_event(event)
    if token:
        return jwt_manager.extract_user_from_token(token)

    return None


def require_auth(func: Callable) -> Callable:
    """Decorator rejecting unauthenticated requests; passes the caller as `user_info`."""

    @wraps(func)
    def wrapper(event: Dict[str, Any], context: Any, *args, **kwargs):
        user_info = get_user_from_event(event)
        if not user_info:
            return unauthorized_response("Authentication required")
        return func(event, context, *args, user_info=user_info, **kwargs)

    return wrapper


def require_role(*roles: str) -> Callable:
    """Decorator restricting a handler to the given roles."""

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(event: Dict[str, Any], context: Any, *args, **kwargs):
            user_info = get_user_from_event(event)
            if not user_info:
                return unauthorized_response("Authentication required")
            if user_info.get('role') not in roles:
                return forbidden_response(f"This action requires the {' or '.join(roles)} role")
            return func(event, context, *args, user_info=user_info, **kwargs)

        return wrapper
    return decorator


def generate_tokens(user_id: str, role: str, email: Optional[str] = None) -> Dict[str, str]:
    """Generate access and refresh tokens for a user."""
    return {
        'access_token': jwt_manager.create_access_token(user_id, role, email),
        'refresh_token': jwt_manager.create_refresh_token(user_id),
        'token_type': 'Bearer'
    }


def hash_password(password: str) -> str:
    """Helper function for password hashing."""
    return password_manager.hash_password(password)


def verify_password(password: str, hashed: str) -> bool:
    """Helper function for password verification."""
    return password_manager.verify_password(password, hashed)


# Global instances
jwt_manager = JWTManager()
password_manager = PasswordManager()
