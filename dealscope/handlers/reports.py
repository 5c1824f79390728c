"""
Report handlers: PDF generation and report sharing.
"""

import json
import logging
import uuid
from typing import Dict, Any
from datetime import datetime, timedelta
from pydantic import BaseModel, EmailStr, ValidationError

from dealscope.utils.response import (
    success_response, error_response, validation_error_response,
    unauthorized_response, not_found_response, server_error_response,
    file_response, error_from_exception, parse_body, path_param
)
from dealscope.utils.database import db
from dealscope.utils.auth import get_user_from_event, require_auth
from dealscope.utils.email import send_report_shared_email
from dealscope.utils.constants import REPORT_SHARE_DAYS
from dealscope.utils.report import render_deal_report
from dealscope.utils.errors import ExpiredError
from dealscope.models.deal import is_deleted, can_read
from dealscope.models.sections import workflow_order
from dealscope.handlers.analytics import track

logger = logging.getLogger()
logger.setLevel(logging.INFO)


class ShareRequest(BaseModel):
    email: EmailStr


def generate_report(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Render the caller's deal and its sections as a PDF download."""
    try:
        user_info = get_user_from_event(event)
        if not user_info:
            return unauthorized_response("Missing authorization header")

        deal_id = parse_body(event).get('dealId')
        if not deal_id:
            return error_response("Deal ID is required", 400)

        deal = db.get_deal(deal_id)
        if not deal or is_deleted(deal) or not can_read(deal, user_info):
            return not_found_response("Deal not found or access denied")

        sections = workflow_order(db.list_sections(deal_id))
        pdf = render_deal_report(deal, sections)

        track(user_info['user_id'], 'feature_usage', 'report_generated', {'deal_id': deal_id})

        return file_response(pdf, "deal-report.pdf")

    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"Generate report error: {str(e)}")
        return server_error_response("Internal server error")


@require_auth
def share_report(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Share a deal report by email; the link expires after a week."""
    try:
        deal_id = path_param(event, 'dealId')
        body = parse_body(event)

        try:
            share_request = ShareRequest(**body)
        except ValidationError as e:
            return validation_error_response(e.errors())

        deal = db.get_deal(deal_id) if deal_id else None
        if not deal or is_deleted(deal) or not can_read(deal, user_info):
            return not_found_response("Deal not found or access denied")

        now = datetime.utcnow()
        share = {
            'share_id': uuid.uuid4().hex,
            'deal_id': deal_id,
            'shared_by': user_info['user_id'],
            'shared_with': share_request.email.lower(),
            'created_at': now.isoformat(),
            'expires_at': (now + timedelta(days=REPORT_SHARE_DAYS)).isoformat()
        }

        if not db.add_shared_report(share):
            return server_error_response("Failed to share report")

        sender = user_info.get('email') or 'A DealScope user'
        if not send_report_shared_email(share['shared_with'], deal['address'], share['share_id'], sender, share['expires_at']):
            logger.warning(f"Share email for {share['share_id']} was not sent")

        track(user_info['user_id'], 'feature_usage', 'report_shared', {'deal_id': deal_id})

        return success_response(data=share, message="Report shared successfully", status_code=201)

    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"Share report error: {str(e)}")
        return server_error_response("Internal server error")


def get_shared_report(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Resolve a share link to a read-only view of the deal."""
    try:
        share = db.get_shared_report(path_param(event, 'shareId') or '')
        if not share:
            return not_found_response("Shared report not found")

        if datetime.utcnow() > datetime.fromisoformat(share['expires_at']):
            return error_from_exception(ExpiredError("This shared report has expired"))

        deal = db.get_deal(share['deal_id'])
        if not deal or is_deleted(deal):
            return not_found_response("Shared report not found")

        return success_response(
            data={
                'deal': {
                    'address': deal['address'],
                    'status': deal['status'],
                    'progress': deal.get('progress', 0),
                    'analyst_score': deal.get('analyst_score'),
                    'score_breakdown': deal.get('score_breakdown'),
                    'executive_summary': deal.get('executive_summary')
                },
                'sections': workflow_order(db.list_sections(deal['deal_id'])),
                'expires_at': share['expires_at']
            },
            message="Shared report retrieved successfully"
        )

    except Exception as e:
        logger.error(f"Get shared report error: {str(e)}")
        return server_error_response("Internal server error")
