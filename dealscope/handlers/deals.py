"""
Deal handlers: submission, dashboards, messages and documents.
"""

import os
import json
import logging
import uuid
from typing import Dict, Any
from datetime import datetime
import boto3
from botocore.exceptions import ClientError
from pydantic import ValidationError

from dealscope.utils.response import (
    success_response, error_response, validation_error_response,
    not_found_response, forbidden_response, server_error_response,
    error_from_exception, parse_body, path_param, query_params
)
from dealscope.utils.database import db
from dealscope.utils.auth import require_auth, require_role
from dealscope.utils.rate_limiter import rate_limit, get_user_identifier, STANDARD_RATE_LIMIT
from dealscope.utils.constants import ANALYSIS_DEPTHS
from dealscope.utils.errors import DealScopeError
from dealscope.models.deal import (
    DEAL_STATUSES, DealCreate, MessageCreate, DocumentUpload,
    credit_cost, new_deal, is_deleted, can_read, current_documents, newest_first
)
from dealscope.models.sections import stage_completion, workflow_order
from dealscope.handlers.credits import add_credits, debit_credits
from dealscope.handlers.analytics import track

logger = logging.getLogger()
logger.setLevel(logging.INFO)

s3_client = boto3.client('s3', region_name=os.getenv('AWS_REGION', 'us-east-1'))
DOCUMENTS_BUCKET = os.getenv('DOCUMENTS_BUCKET', f"dealscope-{os.getenv('STAGE', 'dev')}-documents")
UPLOAD_URL_EXPIRES = 900


def load_readable_deal(deal_id: str, user_info: Dict[str, Any]):
    """Return (deal, None) or (None, error response) for the caller."""
    deal = db.get_deal(deal_id) if deal_id else None
    if not deal or is_deleted(deal):
        return None, not_found_response("Deal not found")
    if not can_read(deal, user_info):
        return None, forbidden_response("You do not have access to this deal")
    return deal, None


@require_role('investor')
def create_deal(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Submit a property for analysis, paying its credit cost."""
    try:
        body = parse_body(event)

        try:
            deal_data = DealCreate(**body)
        except ValidationError as e:
            return validation_error_response(e.errors())

        user_id = user_info['user_id']
        cost = credit_cost(deal_data.analysis_depth)
        depth_name = ANALYSIS_DEPTHS[deal_data.analysis_depth]['name']

        balance = debit_credits(
            user_id, cost, f"{depth_name} for {deal_data.address}",
            error_message=f"You need {cost} credits for a {depth_name}"
        )

        deal = new_deal(user_id, deal_data.address, deal_data.analysis_depth)
        if not db.create_deal(deal):
            add_credits(user_id, cost, 'refund', notes=f"Refund for failed submission of {deal_data.address}")
            return server_error_response("Failed to create deal")

        track(user_id, 'deal_progress', 'deal_submitted', {
            'deal_id': deal['deal_id'],
            'analysis_depth': deal_data.analysis_depth,
            'credits_spent': cost
        })

        return success_response(
            data={'deal': deal, 'credits_remaining': balance},
            message="Deal submitted successfully",
            status_code=201
        )

    except DealScopeError as e:
        return error_from_exception(e)
    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"Create deal error: {str(e)}")
        return server_error_response("Internal server error")


@require_auth
def list_deals(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """The caller's deals, newest first, with message and document counts."""
    try:
        deals = [d for d in db.list_deals_for_investor(user_info['user_id']) if not is_deleted(d)]

        for deal in deals:
            deal['message_count'] = len(db.list_messages(deal['deal_id']))
            deal['document_count'] = len(current_documents(db.list_documents(deal['deal_id'])))

        return success_response(
            data={'deals': newest_first(deals), 'count': len(deals)},
            message="Deals retrieved successfully"
        )

    except Exception as e:
        logger.error(f"List deals error: {str(e)}")
        return server_error_response("Internal server error")


@require_auth
def get_deal(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """One deal with its sections, documents and messages."""
    try:
        deal, error = load_readable_deal(path_param(event, 'dealId'), user_info)
        if error:
            return error

        deal['sections'] = workflow_order(db.list_sections(deal['deal_id']))
        deal['documents'] = current_documents(db.list_documents(deal['deal_id']))
        deal['messages'] = sorted(db.list_messages(deal['deal_id']), key=lambda m: m.get('created_at') or '')

        return success_response(data=deal, message="Deal retrieved successfully")

    except Exception as e:
        logger.error(f"Get deal error: {str(e)}")
        return server_error_response("Internal server error")


@require_auth
def delete_deal(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Soft delete a deal owned by the caller."""
    try:
        deal = db.get_deal(path_param(event, 'dealId'))
        if not deal or is_deleted(deal):
            return not_found_response("Deal not found")
        if deal['investor_id'] != user_info['user_id']:
            return forbidden_response("You can only delete your own deals")

        now = datetime.utcnow().isoformat()
        if db.update_deal(deal['deal_id'], {'deleted_at': now, 'updated_at': now}) is None:
            return server_error_response("Failed to delete deal")

        track(user_info['user_id'], 'deal_progress', 'deal_deleted', {'deal_id': deal['deal_id']})
        return success_response(message="Deal deleted successfully")

    except Exception as e:
        logger.error(f"Delete deal error: {str(e)}")
        return server_error_response("Internal server error")


@require_role('analyst')
def list_analyst_queue(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Every open deal, priority deals first, then oldest first."""
    try:
        status = query_params(event).get('status', 'all')
        if status != 'all' and status not in DEAL_STATUSES:
            return error_response(f"Status must be 'all' or one of: {list(DEAL_STATUSES)}", 400)

        deals = db.list_active_deals()
        if status != 'all':
            deals = [d for d in deals if d.get('status') == status]

        deals.sort(key=lambda d: (not d.get('is_priority'), d.get('created_at') or ''))

        return success_response(
            data={'deals': deals, 'count': len(deals)},
            message="Queue retrieved successfully"
        )

    except Exception as e:
        logger.error(f"Analyst queue error: {str(e)}")
        return server_error_response("Internal server error")


@require_auth
def get_deal_status(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Progress of a deal broken down by workflow stage."""
    try:
        deal, error = load_readable_deal(path_param(event, 'dealId'), user_info)
        if error:
            return error

        progress = deal.get('progress') or 0
        return success_response(
            data={
                'deal_id': deal['deal_id'],
                'address': deal['address'],
                'status': deal['status'],
                'progress': progress,
                'stages': stage_completion(progress)
            },
            message="Deal status retrieved successfully"
        )

    except Exception as e:
        logger.error(f"Deal status error: {str(e)}")
        return server_error_response("Internal server error")


@rate_limit(**STANDARD_RATE_LIMIT, identifier_func=get_user_identifier)
@require_auth
def post_message(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Post a message on a deal thread."""
    try:
        deal, error = load_readable_deal(path_param(event, 'dealId'), user_info)
        if error:
            return error

        body = parse_body(event)
        try:
            message_data = MessageCreate(**body)
        except ValidationError as e:
            return validation_error_response(e.errors())

        now = datetime.utcnow().isoformat()
        message = {
            'deal_id': deal['deal_id'],
            'message_id': f"{now}#{uuid.uuid4().hex[:12]}",
            'user_id': user_info['user_id'],
            'sender_role': user_info.get('role'),
            'content': message_data.content,
            'created_at': now
        }

        if not db.add_message(message):
            return server_error_response("Failed to post message")

        if user_info['user_id'] != deal['investor_id']:
            db.add_notification({
                'user_id': deal['investor_id'],
                'notification_id': f"{now}#{uuid.uuid4().hex[:12]}",
                'type': 'new_message',
                'deal_id': deal['deal_id'],
                'message': f"New message about {deal['address']}",
                'read': False,
                'created_at': now
            })

        return success_response(data=message, message="Message posted", status_code=201)

    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"Post message error: {str(e)}")
        return server_error_response("Internal server error")


@require_auth
def list_messages(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Messages of a deal, oldest first."""
    try:
        deal, error = load_readable_deal(path_param(event, 'dealId'), user_info)
        if error:
            return error

        messages = sorted(db.list_messages(deal['deal_id']), key=lambda m: m.get('created_at') or '')
        return success_response(
            data={'messages': messages, 'count': len(messages)},
            message="Messages retrieved successfully"
        )

    except Exception as e:
        logger.error(f"List messages error: {str(e)}")
        return server_error_response("Internal server error")


@require_auth
def request_document_upload(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """
    Record a document and return a presigned S3 PUT URL for it.

    Uploading a name that already exists creates the next version and marks
    the previous one as replaced.
    """
    try:
        deal, error = load_readable_deal(path_param(event, 'dealId'), user_info)
        if error:
            return error

        body = parse_body(event)
        try:
            upload = DocumentUpload(**body)
        except ValidationError as e:
            return validation_error_response(e.errors())

        existing = [
            doc for doc in current_documents(db.list_documents(deal['deal_id']))
            if doc.get('name') == upload.name
        ]
        previous = existing[0] if existing else None
        version = (previous.get('version', 1) + 1) if previous else 1

        document_id = str(uuid.uuid4())
        s3_key = f"deals/{deal['deal_id']}/{document_id}/{upload.name}"

        upload_url = s3_client.generate_presigned_url(
            'put_object',
            Params={'Bucket': DOCUMENTS_BUCKET, 'Key': s3_key, 'ContentType': upload.content_type},
            ExpiresIn=UPLOAD_URL_EXPIRES
        )

        document = {
            'deal_id': deal['deal_id'],
            'document_id': document_id,
            'name': upload.name,
            'content_type': upload.content_type,
            's3_key': s3_key,
            'url': f"s3://{DOCUMENTS_BUCKET}/{s3_key}",
            'version': version,
            'replaced_by': None,
            'uploaded_by': user_info['user_id'],
            'uploaded_at': datetime.utcnow().isoformat()
        }

        if not db.add_document(document):
            return server_error_response("Failed to record document")

        if previous:
            db.update_document(deal['deal_id'], previous['document_id'], {'replaced_by': document_id})

        return success_response(
            data={'document': document, 'upload_url': upload_url, 'expires_in': UPLOAD_URL_EXPIRES},
            message="Upload URL created",
            status_code=201
        )

    except ClientError as e:
        logger.error(f"Presigned URL error: {str(e)}")
        return error_response("Document storage is unavailable", 502, "STORAGE_ERROR")
    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"Document upload error: {str(e)}")
        return server_error_response("Internal server error")


@require_auth
def list_documents(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Current versions of a deal's documents."""
    try:
        deal, error = load_readable_deal(path_param(event, 'dealId'), user_info)
        if error:
            return error

        documents = newest_first(current_documents(db.list_documents(deal['deal_id'])), 'uploaded_at')
        return success_response(
            data={'documents': documents, 'count': len(documents)},
            message="Documents retrieved successfully"
        )

    except Exception as e:
        logger.error(f"List documents error: {str(e)}")
        return server_error_response("Internal server error")
