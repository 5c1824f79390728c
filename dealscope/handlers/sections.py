"""
Analyst workflow handlers: stage sections, progress and publishing.
"""

import json
import logging
import uuid
from typing import Dict, Any
from datetime import datetime
from pydantic import ValidationError

from dealscope.utils.response import (
    success_response, error_response, validation_error_response,
    not_found_response, server_error_response, error_from_exception,
    parse_body, path_param
)
from dealscope.utils.database import db
from dealscope.utils.auth import require_role
from dealscope.utils.email import send_deal_completed_email
from dealscope.utils.errors import DealScopeError, NotFoundError, WorkflowError
from dealscope.models.deal import is_deleted
from dealscope.models.sections import (
    STAGE_MODELS, STAGE_TYPES, ANALYSIS_STAGE_TYPES, ReviewPublish,
    get_stage, next_stage, prepare_section_data
)
from dealscope.handlers.analytics import track

logger = logging.getLogger()
logger.setLevel(logging.INFO)


def load_open_deal(deal_id: str) -> Dict[str, Any]:
    deal = db.get_deal(deal_id) if deal_id else None
    if not deal or is_deleted(deal):
        raise NotFoundError("Deal not found")
    return deal


def write_audit_log(deal_id: str, user_id: str, action: str, changes: Dict[str, Any]) -> None:
    now = datetime.utcnow().isoformat()
    db.add_audit_log({
        'deal_id': deal_id,
        'log_id': f"{now}#{uuid.uuid4().hex[:12]}",
        'user_id': user_id,
        'action': action,
        'changes': changes,
        'created_at': now
    })


@require_role('analyst')
def get_section(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Saved data of one workflow stage."""
    try:
        section_type = path_param(event, 'sectionType')
        if section_type not in STAGE_TYPES:
            return error_response(f"Section type must be one of: {STAGE_TYPES}", 400)

        deal = load_open_deal(path_param(event, 'dealId'))
        section = db.get_section(deal['deal_id'], section_type)
        if not section:
            return not_found_response("Section has not been saved yet")

        return success_response(data=section, message="Section retrieved successfully")

    except DealScopeError as e:
        return error_from_exception(e)
    except Exception as e:
        logger.error(f"Get section error: {str(e)}")
        return server_error_response("Internal server error")


@require_role('analyst')
def save_section(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """
    Validate, enrich and store one stage of the analysis, then advance the
    deal to the stage's milestone (progress never goes down).
    """
    try:
        section_type = path_param(event, 'sectionType')
        if section_type == 'review':
            return error_response("The final review is saved by publishing the deal", 400)
        if section_type not in STAGE_MODELS:
            return error_response(f"Section type must be one of: {list(STAGE_MODELS)}", 400)

        deal = load_open_deal(path_param(event, 'dealId'))
        body = parse_body(event)
        raw = body.get('data', body)

        saved = {s['section_type']: s.get('data') or {} for s in db.list_sections(deal['deal_id'])}
        data = prepare_section_data(section_type, raw, saved)

        now = datetime.utcnow().isoformat()
        section = {
            'deal_id': deal['deal_id'],
            'section_type': section_type,
            'data': data,
            'completed': True,
            'updated_by': user_info['user_id'],
            'updated_at': now
        }
        if not db.put_section(section):
            return server_error_response("Failed to save section")

        write_audit_log(deal['deal_id'], user_info['user_id'], 'update', {'section': section_type, 'data': data})

        stage = get_stage(section_type)
        updated = db.advance_deal_progress(deal['deal_id'], stage['milestone'], now) or deal
        if updated.get('status') == 'pending':
            updated = db.update_deal(deal['deal_id'], {'status': 'in_progress'}) or updated

        track(user_info['user_id'], 'deal_progress', 'section_saved', {
            'deal_id': deal['deal_id'],
            'section': section_type,
            'progress': updated.get('progress')
        })

        return success_response(
            data={
                'section': section,
                'progress': updated.get('progress'),
                'status': updated.get('status'),
                'next_stage': next_stage(section_type)
            },
            message=f"{stage['title']} saved"
        )

    except ValidationError as e:
        return validation_error_response(e.errors())
    except DealScopeError as e:
        return error_from_exception(e)
    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"Save section error: {str(e)}")
        return server_error_response("Internal server error")


@require_role('analyst')
def publish_deal(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Store the final review, complete the deal and notify the investor."""
    try:
        deal = load_open_deal(path_param(event, 'dealId'))
        body = parse_body(event)

        try:
            review = ReviewPublish(**body)
        except ValidationError as e:
            return validation_error_response(e.errors())

        sections = {s['section_type']: s for s in db.list_sections(deal['deal_id'])}
        missing = [t for t in ANALYSIS_STAGE_TYPES if not (sections.get(t) or {}).get('completed')]
        if missing:
            raise WorkflowError(f"Complete these sections before publishing: {', '.join(missing)}")

        now = datetime.utcnow().isoformat()
        breakdown = review.score.breakdown()
        review_data = {
            'score': breakdown,
            'executive_summary': review.executive_summary,
            'final_notes': review.final_notes
        }

        if not db.put_section({
            'deal_id': deal['deal_id'],
            'section_type': 'review',
            'data': review_data,
            'completed': True,
            'updated_by': user_info['user_id'],
            'updated_at': now
        }):
            return server_error_response("Failed to save review")

        updates = {
            'status': 'completed',
            'progress': 100,
            'analyst_score': breakdown['total'],
            'score_breakdown': breakdown,
            'executive_summary': review.executive_summary,
            'completed_at': now,
            'updated_at': now
        }
        if review.time_spent is not None:
            updates['time_spent'] = review.time_spent

        updated = db.update_deal(deal['deal_id'], updates)
        if updated is None:
            return server_error_response("Failed to publish deal")

        write_audit_log(deal['deal_id'], user_info['user_id'], 'publish', {'section': 'review', 'data': review_data})

        message = f"Your deal analysis for {deal['address']} is complete."
        db.add_notification({
            'user_id': deal['investor_id'],
            'notification_id': f"{now}#{uuid.uuid4().hex[:12]}",
            'type': 'deal_completed',
            'deal_id': deal['deal_id'],
            'message': message,
            'read': False,
            'created_at': now
        })

        investor = db.get_user(deal['investor_id'])
        if investor and not send_deal_completed_email(
            investor['email'], deal['address'], deal['deal_id'], investor.get('name') or 'there'
        ):
            logger.warning(f"Completion email for deal {deal['deal_id']} was not sent")

        track(user_info['user_id'], 'deal_progress', 'deal_published', {
            'deal_id': deal['deal_id'],
            'score': breakdown['total']
        })

        return success_response(data=updated, message=message)

    except DealScopeError as e:
        return error_from_exception(e)
    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"Publish deal error: {str(e)}")
        return server_error_response("Internal server error")
