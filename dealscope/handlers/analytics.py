"""
Analytics handlers for tracking events and the analyst dashboards.
"""

import csv
import io
import json
import logging
import uuid
from collections import Counter
from typing import Dict, Any, Optional
from datetime import datetime, timedelta
from pydantic import ValidationError

from dealscope.utils.response import (
    success_response, error_response, text_response, server_error_response,
    parse_body, query_params
)
from dealscope.utils.database import db
from dealscope.utils.auth import get_user_from_event, require_role
from dealscope.utils.constants import EVENT_TYPES

logger = logging.getLogger()
logger.setLevel(logging.INFO)

RANGES = {'7d': 7, '30d': 30, '90d': 90}
EXPORT_LIMIT = 1000
SIGNUP_REPORT_DAYS = 30


def track(
    user_id: Optional[str],
    event_type: str,
    event_name: str,
    metadata: Optional[Dict[str, Any]] = None,
    session_id: Optional[str] = None
) -> bool:
    """
    Record an analytics event from feature code.

    Never raises: telemetry failures are logged and reported as False.
    """
    try:
        return db.track_event({
            'event_type': event_type,
            'timestamp': datetime.utcnow().isoformat(),
            'event_id': str(uuid.uuid4()),
            'event_name': event_name,
            'user_id': user_id,
            'session_id': session_id,
            'metadata': metadata or {},
            'source': 'api'
        })
    except Exception as e:
        logger.error(f"Failed to track {event_type}/{event_name}: {str(e)}")
        return False


def track_event(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Track an analytics event sent by the client."""
    try:
        body = parse_body(event)

        event_type = body.get('event_type')
        event_name = body.get('event_name')

        if event_type not in EVENT_TYPES:
            return error_response(f"Event type must be one of: {list(EVENT_TYPES)}", 400)
        if not event_name:
            return error_response("Event name is required", 400)

        # Anonymous events are allowed; an authenticated caller wins over the body
        user_info = get_user_from_event(event)
        user_id = user_info['user_id'] if user_info else body.get('user_id')

        if not track(user_id, event_type, event_name, body.get('metadata'), body.get('session_id')):
            return server_error_response("Failed to track event")

        return success_response(message="Event tracked successfully")

    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"Track event error: {str(e)}")
        return server_error_response("Internal server error")


def start_session(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Open an analytics session and return its id."""
    try:
        body = parse_body(event)
        user_info = get_user_from_event(event)
        identity = (event.get('requestContext') or {}).get('identity') or {}

        session = {
            'session_id': str(uuid.uuid4()),
            'user_id': user_info['user_id'] if user_info else None,
            'started_at': datetime.utcnow().isoformat(),
            'ended_at': None,
            'device_info': body.get('device_info') or {'user_agent': identity.get('userAgent')},
            'page_views': 0
        }

        if not db.create_session(session):
            return server_error_response("Failed to start session")

        return success_response(
            data={'session_id': session['session_id']},
            message="Session started",
            status_code=201
        )

    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"Start session error: {str(e)}")
        return server_error_response("Internal server error")


def end_session(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Close an analytics session."""
    try:
        body = parse_body(event)
        session_id = body.get('session_id')
        if not session_id:
            return error_response("Session id is required", 400)

        if not db.update_session(session_id, {'ended_at': datetime.utcnow().isoformat()}):
            return server_error_response("Failed to end session")

        return success_response(message="Session ended")

    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"End session error: {str(e)}")
        return server_error_response("Internal server error")


def track_page_view(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Record a page view inside a session."""
    try:
        body = parse_body(event)
        session_id = body.get('session_id')
        path = body.get('path')

        if not session_id or not path:
            return error_response("Session id and path are required", 400)

        user_info = get_user_from_event(event)
        page_view = {
            'session_id': session_id,
            'timestamp': datetime.utcnow().isoformat(),
            'user_id': user_info['user_id'] if user_info else None,
            'path': path,
            'query_params': body.get('query_params') or {}
        }

        if not db.add_page_view(page_view):
            return server_error_response("Failed to track page view")

        return success_response(message="Page view tracked")

    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"Track page view error: {str(e)}")
        return server_error_response("Internal server error")


@require_role('analyst')
def get_admin_analytics(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Platform KPIs for the analyst dashboard."""
    try:
        range_key = query_params(event).get('range', '7d')
        if range_key not in RANGES:
            return error_response(f"Range must be one of: {list(RANGES)}", 400)

        now = datetime.utcnow()
        range_start = (now - timedelta(days=RANGES[range_key])).isoformat()
        today_start = now.replace(hour=0, minute=0, second=0, microsecond=0).isoformat()

        events = db.get_events_since(range_start)
        daily_active = len({
            e['user_id'] for e in events
            if e.get('user_id') and e.get('timestamp', '') >= today_start
        })

        total_users = len(db.list_users())
        conversion_rate = round(daily_active / total_users * 100, 2) if total_users else 0

        deals = db.list_active_deals()
        average_progress = round(sum(d.get('progress') or 0 for d in deals) / len(deals)) if deals else 0

        mrr = sum(sub.get('amount') or 0 for sub in db.list_subscriptions('active'))

        events_by_day = Counter(e['timestamp'][:10] for e in events if e.get('timestamp'))

        return success_response(
            data={
                'range': range_key,
                'user_metrics': {
                    'daily_active_users': daily_active,
                    'total_users': total_users,
                    'conversion_rate': conversion_rate
                },
                'deal_metrics': {
                    'total_deals': len(deals),
                    'average_progress': average_progress
                },
                'revenue_metrics': {
                    'mrr': mrr,
                    'arr': mrr * 12
                },
                'events_by_type': dict(Counter(e.get('event_type') for e in events)),
                'events_by_day': dict(sorted(events_by_day.items()))
            },
            message="Analytics retrieved successfully"
        )

    except Exception as e:
        logger.error(f"Admin analytics error: {str(e)}")
        return server_error_response("Internal server error")


@require_role('analyst')
def export_events_csv(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Download the most recent events as CSV."""
    try:
        events = sorted(db.get_events_since(), key=lambda e: e.get('timestamp', ''), reverse=True)

        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(['Timestamp', 'Event Type', 'Event Name', 'User ID'])
        for record in events[:EXPORT_LIMIT]:
            writer.writerow([
                record.get('timestamp', ''),
                record.get('event_type', ''),
                record.get('event_name', ''),
                record.get('user_id') or ''
            ])

        filename = f"analytics-export-{datetime.utcnow().strftime('%Y-%m-%d')}.csv"
        return text_response(buffer.getvalue(), filename)

    except Exception as e:
        logger.error(f"Export events error: {str(e)}")
        return server_error_response("Internal server error")


def summarize_signups(users, now: datetime) -> Dict[str, Any]:
    cutoff = (now - timedelta(days=SIGNUP_REPORT_DAYS)).isoformat()
    ordered = sorted(users, key=lambda u: u.get('created_at') or '', reverse=True)
    recent = [u for u in ordered if (u.get('created_at') or '') >= cutoff]

    signups = [
        {
            'user_id': u['user_id'],
            'email': u.get('email'),
            'name': u.get('name'),
            'role': u.get('role'),
            'status': u.get('status', 'active'),
            'created_at': u.get('created_at')
        }
        for u in recent
    ]

    summary = {'total': len(recent), 'active': 0, 'suspended': 0, 'peak_date': None, 'peak_count': 0}
    if recent:
        summary['suspended'] = sum(1 for u in recent if u.get('status') == 'suspended')
        summary['active'] = len(recent) - summary['suspended']
        peak_date, peak_count = Counter(u['created_at'][:10] for u in recent).most_common(1)[0]
        summary['peak_date'] = peak_date
        summary['peak_count'] = peak_count

    last_signup = None
    if not recent and ordered:
        last_signup = {'email': ordered[0].get('email'), 'created_at': ordered[0].get('created_at')}

    return {'signups': signups, 'summary': summary, 'last_signup': last_signup}


@require_role('analyst')
def get_signup_report(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Signups over the last 30 days."""
    try:
        report = summarize_signups(db.list_users(), datetime.utcnow())
        return success_response(data=report, message="Signup report retrieved successfully")

    except Exception as e:
        logger.error(f"Signup report error: {str(e)}")
        return server_error_response("Internal server error")
