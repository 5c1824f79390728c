"""
User profile and account handlers.
"""

import json
import logging
from typing import Dict, Any
from datetime import datetime
from pydantic import ValidationError

from dealscope.utils.response import (
    success_response, error_response, validation_error_response,
    forbidden_response, not_found_response, server_error_response,
    parse_body, path_param
)
from dealscope.utils.database import db
from dealscope.utils.auth import require_auth, require_role
from dealscope.models.user import User, ProfileUpdate, USER_STATUSES
from dealscope.handlers.analytics import track
from dealscope.handlers.auth import issue_password_reset

logger = logging.getLogger()
logger.setLevel(logging.INFO)


@require_auth
def get_user(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Get current user profile."""
    try:
        user_data = db.get_user(user_info['user_id'])
        if not user_data:
            return not_found_response("User not found")

        return success_response(
            data=User(user_data).to_public_dict(),
            message="User profile retrieved successfully"
        )

    except Exception as e:
        logger.error(f"Get user error: {str(e)}")
        return server_error_response("Internal server error")


@require_auth
def update_profile(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Update name, email or phone number of the current user."""
    try:
        body = parse_body(event)

        try:
            update_data = ProfileUpdate(**body)
        except ValidationError as e:
            return validation_error_response(e.errors())

        user_id = user_info['user_id']
        user_data = db.get_user(user_id)
        if not user_data:
            return not_found_response("User not found")

        updates = update_data.model_dump(exclude_none=True)
        if 'email' in updates:
            updates['email'] = updates['email'].strip().lower()
            if updates['email'] != user_data.get('email'):
                owner = db.get_user_by_email(updates['email'])
                if owner and owner['user_id'] != user_id:
                    return error_response("Email is already in use", 409, "EMAIL_IN_USE")

        if not updates:
            return error_response("No valid fields to update", 400)

        updates['updated_at'] = datetime.utcnow().isoformat()
        if not db.update_user(user_id, updates):
            return server_error_response("Failed to update user")

        user_data.update(updates)
        track(user_id, 'feature_usage', 'profile_updated', {'fields': sorted(updates)})

        return success_response(
            data=User(user_data).to_public_dict(),
            message="Profile updated successfully"
        )

    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"Update profile error: {str(e)}")
        return server_error_response("Internal server error")


@require_auth
def delete_user(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """
    Delete an account and every row that references it.

    Body carries `userId` or `email`. Users may delete themselves; analysts
    may delete anyone.
    """
    try:
        body = parse_body(event)
        target_id = body.get('userId')
        email = body.get('email')

        if not target_id and not email:
            return error_response("userId or email is required", 400)

        user_data = db.get_user(target_id) if target_id else db.get_user_by_email(email)
        if not user_data:
            return not_found_response("User not found")

        if user_data['user_id'] != user_info['user_id'] and user_info.get('role') != 'analyst':
            return forbidden_response("You can only delete your own account")

        deleted = db.purge_user_data(user_data['user_id'], user_data.get('email'))
        if not db.delete_user(user_data['user_id']):
            return server_error_response("Failed to delete user")

        logger.info(f"Deleted user {user_data['user_id']}: {deleted}")
        track(user_info['user_id'], 'auth', 'account_deleted', {'deleted_user_id': user_data['user_id']})

        return success_response(
            data={'user_id': user_data['user_id'], 'deleted': deleted},
            message="User deleted successfully"
        )

    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"Delete user error: {str(e)}")
        return server_error_response("Internal server error")


@require_role('analyst')
def list_customers(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Investor accounts with their credit balances, newest first."""
    try:
        customers = []
        for user_data in db.list_users():
            if user_data.get('role') != 'investor':
                continue
            customer = User(user_data).to_public_dict()
            wallet = db.get_wallet(customer['user_id']) or {}
            customer['credits'] = wallet.get('credits', 0)
            customers.append(customer)

        customers.sort(key=lambda c: c.get('created_at') or '', reverse=True)
        return success_response(
            data={'customers': customers, 'count': len(customers)},
            message="Customers retrieved successfully"
        )

    except Exception as e:
        logger.error(f"List customers error: {str(e)}")
        return server_error_response("Internal server error")


@require_role('analyst')
def update_customer_status(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Suspend or reactivate a customer account."""
    try:
        user_id = path_param(event, 'userId')
        status = parse_body(event).get('status')

        if status not in USER_STATUSES:
            return error_response(f"Status must be one of: {list(USER_STATUSES)}", 400)
        if not db.get_user(user_id):
            return not_found_response("User not found")

        if not db.update_user(user_id, {'status': status, 'updated_at': datetime.utcnow().isoformat()}):
            return server_error_response("Failed to update user")

        return success_response(data={'user_id': user_id, 'status': status}, message="Status updated")

    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"Update customer status error: {str(e)}")
        return server_error_response("Internal server error")


@require_role('analyst')
def send_customer_password_reset(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Send a password reset link to a customer."""
    try:
        user_data = db.get_user(path_param(event, 'userId'))
        if not user_data:
            return not_found_response("User not found")

        if not issue_password_reset(User(user_data)):
            return server_error_response("Failed to send password reset")

        return success_response(message=f"Password reset sent to {user_data['email']}")

    except Exception as e:
        logger.error(f"Customer password reset error: {str(e)}")
        return server_error_response("Internal server error")
