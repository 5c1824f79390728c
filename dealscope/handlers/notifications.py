"""
In-app notification handlers.
"""

import logging
from typing import Dict, Any
from datetime import datetime

from dealscope.utils.response import (
    success_response, not_found_response, server_error_response, path_param, query_params
)
from dealscope.utils.database import db
from dealscope.utils.auth import require_auth

logger = logging.getLogger()
logger.setLevel(logging.INFO)


@require_auth
def list_notifications(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """The caller's notifications, newest first; `?unread=true` hides read ones."""
    try:
        notifications = db.list_notifications(user_info['user_id'])
        if query_params(event).get('unread', '').lower() == 'true':
            notifications = [n for n in notifications if not n.get('read')]

        notifications.sort(key=lambda n: n.get('created_at') or '', reverse=True)
        return success_response(
            data={
                'notifications': notifications,
                'count': len(notifications),
                'unread_count': sum(1 for n in notifications if not n.get('read'))
            },
            message="Notifications retrieved successfully"
        )

    except Exception as e:
        logger.error(f"List notifications error: {str(e)}")
        return server_error_response("Internal server error")


@require_auth
def mark_notification_read(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    try:
        notification_id = path_param(event, 'notificationId') or ''
        updated = db.update_notification(user_info['user_id'], notification_id, {
            'read': True,
            'read_at': datetime.utcnow().isoformat()
        })
        if updated is None:
            return not_found_response("Notification not found")

        return success_response(data=updated, message="Notification marked as read")

    except Exception as e:
        logger.error(f"Mark notification error: {str(e)}")
        return server_error_response("Internal server error")
