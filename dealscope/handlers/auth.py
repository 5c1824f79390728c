"""
Authentication handlers for signup, role-checked login, token management
and password reset.
"""

import json
import logging
import os
import uuid
from typing import Dict, Any
from datetime import datetime, timedelta
from pydantic import ValidationError

from dealscope.utils.response import (
    success_response, error_response, validation_error_response,
    unauthorized_response, forbidden_response, server_error_response, parse_body
)
from dealscope.utils.database import db
from dealscope.utils.auth import (
    jwt_manager, password_manager, extract_token_from_event, generate_tokens, require_auth,
    get_user_from_event
)
from dealscope.utils.email import send_welcome_email, send_password_reset_email
from dealscope.utils.rate_limiter import rate_limit, get_ip_identifier, AUTH_RATE_LIMIT
from dealscope.utils.constants import SIGNUP_BONUS_CREDITS
from dealscope.models.user import User, UserSignup, UserLogin, PasswordResetRequest, PasswordResetConfirm
from dealscope.models.credits import new_wallet, new_transaction
from dealscope.handlers.analytics import track
from dealscope.handlers.pipeline import record_stage

logger = logging.getLogger()
logger.setLevel(logging.INFO)

RESET_TOKEN_TTL = timedelta(hours=1)


def analyst_signup_allowed(event: Dict[str, Any], email: str) -> bool:
    """Analyst accounts are opened by a signed-in analyst or for allowlisted emails."""
    caller = get_user_from_event(event)
    if caller and caller.get('role') == 'analyst':
        return True

    allowlist = os.getenv('ANALYST_SIGNUP_EMAILS', '')
    return email.lower() in {e.strip().lower() for e in allowlist.split(',') if e.strip()}


@rate_limit(max_requests=10, window_seconds=3600, identifier_func=get_ip_identifier)
def signup(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Create an account with its complimentary credits."""
    try:
        body = parse_body(event)

        try:
            signup_data = UserSignup(**body)
        except ValidationError as e:
            return validation_error_response(e.errors())

        if signup_data.role == 'analyst' and not analyst_signup_allowed(event, signup_data.email):
            logger.warning(f"Refused analyst signup for {signup_data.email}")
            return forbidden_response("Analyst accounts must be created by an existing analyst")

        if db.get_user_by_email(signup_data.email):
            return error_response(
                message="User with this email already exists",
                status_code=409,
                error_code="USER_EXISTS"
            )

        user = User.create_new(
            email=signup_data.email,
            password_hash=password_manager.hash_password(signup_data.password),
            role=signup_data.role,
            name=signup_data.name,
            phone_number=signup_data.phone_number
        )

        if not db.create_user(user.to_dict()):
            return server_error_response("Failed to create user")

        # Welcome credits
        db.create_wallet(new_wallet(user.user_id, credits=SIGNUP_BONUS_CREDITS))
        db.add_credit_transaction(new_transaction(
            user.user_id, SIGNUP_BONUS_CREDITS, 'purchase', notes='Complimentary signup credits'
        ))

        record_stage(user.email, 'signup', source='signup', name=user.name)
        track(user.user_id, 'auth', 'signup', {'role': user.role})

        if not send_welcome_email(user.email, user.display_name, SIGNUP_BONUS_CREDITS):
            logger.warning(f"Welcome email to {user.email} was not sent")

        return success_response(
            data={
                "user": user.to_public_dict(),
                "credits": SIGNUP_BONUS_CREDITS,
                **generate_tokens(user.user_id, user.role, user.email)
            },
            message="Account created successfully",
            status_code=201
        )

    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"Signup error: {str(e)}")
        return server_error_response("Internal server error")


@rate_limit(**AUTH_RATE_LIMIT, identifier_func=get_ip_identifier)
def login(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Log in with the role selected on the login form."""
    try:
        body = parse_body(event)

        try:
            login_data = UserLogin(**body)
        except ValidationError as e:
            return validation_error_response(e.errors())

        ip_address = ((event.get('requestContext') or {}).get('identity') or {}).get('sourceIp', 'unknown')

        user_data = db.get_user_by_email(login_data.email)
        if not user_data:
            logger.warning(f"Login attempt for unknown email from {ip_address}")
            return unauthorized_response("Invalid email or password")

        user = User(user_data)

        if not password_manager.verify_password(login_data.password, user.password_hash):
            logger.warning(f"Failed login attempt for {login_data.email} from {ip_address}")
            return unauthorized_response("Invalid email or password")

        if not user.is_active:
            logger.warning(f"Login attempt on suspended account: {login_data.email}")
            return forbidden_response("Account is suspended")

        if user.role != login_data.role:
            logger.warning(f"Role mismatch for {login_data.email}: selected {login_data.role}")
            return forbidden_response(f"Please select {user.role} when logging in.")

        now = datetime.utcnow().isoformat()
        db.update_user(user.user_id, {'last_login': now, 'updated_at': now})
        user.last_login = now

        track(user.user_id, 'auth', 'login', {'role': user.role})
        logger.info(f"Successful login for {login_data.email} from {ip_address}")

        return success_response(
            data={
                "user": user.to_public_dict(),
                "role": user.role,
                **generate_tokens(user.user_id, user.role, user.email)
            },
            message="Login successful"
        )

    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"Login error: {str(e)}")
        return server_error_response("Internal server error")


def refresh_token(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Exchange a refresh token for a new access token."""
    try:
        body = parse_body(event)
        token = body.get('refresh_token')

        if not token:
            return error_response("Refresh token is required", 400)

        payload = jwt_manager.verify_token(token)
        if not payload or payload.get('type') != 'refresh':
            return unauthorized_response("Invalid or expired refresh token")

        user_data = db.get_user(payload.get('sub'))
        if not user_data:
            return unauthorized_response("User not found")

        user = User(user_data)
        if not user.is_active:
            return forbidden_response("Account is suspended")

        return success_response(
            data={
                "access_token": jwt_manager.create_access_token(user.user_id, user.role, user.email),
                "token_type": "Bearer"
            },
            message="Token refreshed successfully"
        )

    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"Token refresh error: {str(e)}")
        return server_error_response("Internal server error")


@require_auth
def logout(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Tokens are stateless; logging out only records the event."""
    track(user_info['user_id'], 'auth', 'logout')
    return success_response(message="Logged out successfully")


def authorizer(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Lambda authorizer for API Gateway."""
    token = extract_token_from_event(event)
    if not token and event.get('authorizationToken', '').startswith('Bearer '):
        token = event['authorizationToken'][7:]

    user_info = jwt_manager.extract_user_from_token(token) if token else None
    effect = 'Allow' if user_info else 'Deny'

    if not user_info:
        logger.warning("Authorization denied: missing or invalid token")

    policy = {
        "principalId": user_info['user_id'] if user_info else "anonymous",
        "policyDocument": {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Action": "execute-api:Invoke",
                    "Effect": effect,
                    "Resource": event['methodArn']
                }
            ]
        }
    }

    if user_info:
        # Authorizer context values must be strings
        policy["context"] = {key: value or '' for key, value in user_info.items()}

    return policy


def issue_password_reset(user: User) -> bool:
    """Store a single-use reset token for a user and email the link."""
    reset_token = str(uuid.uuid4())
    now = datetime.utcnow()

    reset_data = {
        'reset_token': reset_token,
        'user_id': user.user_id,
        'expires_at': (now + RESET_TOKEN_TTL).isoformat(),
        'created_at': now.isoformat(),
        'used': False
    }

    if not db.create_password_reset(reset_data):
        logger.error(f"Failed to store reset token for {user.email}")
        return False

    return send_password_reset_email(user.email, reset_token, user.display_name)


@rate_limit(max_requests=3, window_seconds=300, identifier_func=get_ip_identifier)
def request_password_reset(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Email a reset link without revealing whether the account exists."""
    try:
        body = parse_body(event)

        try:
            reset_request = PasswordResetRequest(**body)
        except ValidationError as e:
            return validation_error_response(e.errors())

        user_data = db.get_user_by_email(reset_request.email)
        if user_data and User(user_data).is_active:
            if not issue_password_reset(User(user_data)):
                return server_error_response("Failed to process reset request")
            logger.info(f"Password reset email sent to {reset_request.email}")
        else:
            logger.info(f"Password reset requested for unknown or inactive user: {reset_request.email}")

        return success_response(
            message="If an account exists with this email, a password reset link has been sent."
        )

    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"Password reset request error: {str(e)}")
        return server_error_response("Internal server error")


@rate_limit(max_requests=5, window_seconds=300, identifier_func=get_ip_identifier)
def reset_password(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Set a new password with a reset token."""
    try:
        body = parse_body(event)

        try:
            confirm = PasswordResetConfirm(**body)
        except ValidationError as e:
            return validation_error_response(e.errors())

        reset_data = db.get_password_reset(confirm.token)
        if not reset_data:
            return error_response("Invalid or expired reset token", 400)

        if datetime.utcnow() > datetime.fromisoformat(reset_data['expires_at']):
            db.delete_password_reset(confirm.token)
            return error_response("Reset token has expired", 400)

        if reset_data.get('used'):
            return error_response("Reset token has already been used", 400)

        user_data = db.get_user(reset_data['user_id'])
        if not user_data:
            return error_response("User not found", 404)

        now = datetime.utcnow().isoformat()
        if not db.update_user(user_data['user_id'], {
            'password_hash': password_manager.hash_password(confirm.new_password),
            'password_changed_at': now,
            'updated_at': now
        }):
            return server_error_response("Failed to update password")

        db.update_password_reset(confirm.token, {'used': True, 'used_at': now})
        track(user_data['user_id'], 'auth', 'password_reset')

        return success_response(
            message="Password has been reset successfully. You can now log in with your new password."
        )

    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"Password reset error: {str(e)}")
        return server_error_response("Internal server error")
