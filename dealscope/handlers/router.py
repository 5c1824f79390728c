"""
Single entry point routing proxy events to handlers.

Used when the API runs as one Lambda behind an ALB, where events carry a raw
path instead of an API Gateway resource template.
"""

import re
import logging
from typing import Dict, Any, Callable, Optional, Tuple

from dealscope.utils.response import error_response, preflight_response
from dealscope.handlers import (
    analytics, appointments, auth, contacts, credits, deals, health, leads,
    notifications, payments, pipeline, reports, sections, users
)

logger = logging.getLogger()
logger.setLevel(logging.INFO)

ROUTES = {
    ('GET', '/health'): health.check,

    ('POST', '/auth/signup'): auth.signup,
    ('POST', '/auth/login'): auth.login,
    ('POST', '/auth/refresh'): auth.refresh_token,
    ('POST', '/auth/logout'): auth.logout,
    ('POST', '/auth/password-reset'): auth.request_password_reset,
    ('POST', '/auth/password-reset/confirm'): auth.reset_password,

    ('GET', '/users/me'): users.get_user,
    ('PUT', '/users/me'): users.update_profile,
    ('POST', '/users/delete'): users.delete_user,
    ('GET', '/customers'): users.list_customers,
    ('PUT', '/customers/{userId}/status'): users.update_customer_status,
    ('POST', '/customers/{userId}/password-reset'): users.send_customer_password_reset,

    ('GET', '/credits'): credits.get_wallet,
    ('GET', '/credits/transactions'): credits.list_transactions,
    ('POST', '/credits/adjust'): credits.adjust_credits,

    ('POST', '/deals'): deals.create_deal,
    ('GET', '/deals'): deals.list_deals,
    ('GET', '/deals/queue'): deals.list_analyst_queue,
    ('GET', '/deals/{dealId}'): deals.get_deal,
    ('DELETE', '/deals/{dealId}'): deals.delete_deal,
    ('GET', '/deals/{dealId}/status'): deals.get_deal_status,
    ('GET', '/deals/{dealId}/messages'): deals.list_messages,
    ('POST', '/deals/{dealId}/messages'): deals.post_message,
    ('GET', '/deals/{dealId}/documents'): deals.list_documents,
    ('POST', '/deals/{dealId}/documents'): deals.request_document_upload,
    ('GET', '/deals/{dealId}/sections/{sectionType}'): sections.get_section,
    ('PUT', '/deals/{dealId}/sections/{sectionType}'): sections.save_section,
    ('POST', '/deals/{dealId}/publish'): sections.publish_deal,
    ('POST', '/deals/{dealId}/share'): reports.share_report,

    ('POST', '/reports'): reports.generate_report,
    ('GET', '/shared/{shareId}'): reports.get_shared_report,

    ('GET', '/pipeline'): pipeline.get_board,
    ('POST', '/pipeline'): pipeline.add_lead,
    ('PUT', '/pipeline/{entryId}'): pipeline.move_entry,
    ('DELETE', '/pipeline/{entryId}'): pipeline.delete_entry,
    ('POST', '/leads'): leads.capture_lead,

    ('POST', '/contact'): contacts.submit_contact_request,
    ('GET', '/contact-requests'): contacts.list_contact_requests,
    ('PUT', '/contact-requests/{requestId}'): contacts.update_contact_request,
    ('GET', '/contact-requests/{requestId}/notes'): contacts.list_contact_notes,
    ('POST', '/contact-requests/{requestId}/notes'): contacts.add_contact_note,

    ('GET', '/appointments'): appointments.list_appointments,
    ('POST', '/appointments'): appointments.create_appointment,
    ('PUT', '/appointments/{appointmentId}'): appointments.update_appointment,
    ('DELETE', '/appointments/{appointmentId}'): appointments.delete_appointment,

    ('GET', '/products'): payments.list_products,
    ('POST', '/checkout'): payments.create_checkout,
    ('POST', '/webhooks/stripe'): payments.stripe_webhook,
    ('GET', '/billing'): payments.get_billing_info,
    ('POST', '/billing/cancel'): payments.cancel_subscription,

    ('POST', '/analytics/events'): analytics.track_event,
    ('POST', '/analytics/sessions'): analytics.start_session,
    ('POST', '/analytics/sessions/end'): analytics.end_session,
    ('POST', '/analytics/page-views'): analytics.track_page_view,
    ('GET', '/analytics/admin'): analytics.get_admin_analytics,
    ('GET', '/analytics/export'): analytics.export_events_csv,
    ('GET', '/analytics/signups'): analytics.get_signup_report,

    ('GET', '/notifications'): notifications.list_notifications,
    ('PUT', '/notifications/{notificationId}/read'): notifications.mark_notification_read,
}


def compile_template(template: str):
    pattern = re.sub(r'\{(\w+)\}', r'(?P<\1>[^/]+)', template)
    return re.compile(f'^{pattern}$')


# Literal templates first so /deals/queue is not captured by /deals/{dealId}
PATTERNS = sorted(
    ((method, template, compile_template(template), handler) for (method, template), handler in ROUTES.items()),
    key=lambda route: route[1].count('{')
)


def match_route(method: str, path: str) -> Tuple[Optional[Callable], Dict[str, str], bool]:
    """Return (handler, path parameters, path_exists)."""
    path = '/' + path.strip('/') if path != '/' else path
    matched_level = None
    for route_method, template, pattern, handler in PATTERNS:
        level = template.count('{')
        # A path claimed by a more literal template never falls through to a looser one
        if matched_level is not None and level > matched_level:
            break
        match = pattern.match(path)
        if not match:
            continue
        matched_level = level
        if route_method == method:
            return handler, match.groupdict(), True
    return None, {}, matched_level is not None


def dispatch(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Route a proxy event to its handler."""
    method = (event.get('httpMethod') or '').upper()
    if method == 'OPTIONS':
        return preflight_response()

    resource = event.get('resource')
    if resource and (method, resource) in ROUTES:
        return ROUTES[(method, resource)](event, context)

    handler, params, path_exists = match_route(method, event.get('path') or '/')
    if not handler:
        if path_exists:
            return error_response("Method not allowed", 405, "METHOD_NOT_ALLOWED")
        logger.info(f"No route for {method} {event.get('path')}")
        return error_response("Route not found", 404, "NOT_FOUND")

    event = dict(event, pathParameters={**(event.get('pathParameters') or {}), **params})
    return handler(event, context)


# Lambda entry point
lambda_handler = dispatch
