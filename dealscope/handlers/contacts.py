"""
Contact form submissions and the analyst contact board.
"""

import json
import logging
import uuid
from typing import Dict, Any, Optional
from datetime import datetime
from pydantic import BaseModel, EmailStr, field_validator, ValidationError

from dealscope.utils.response import (
    success_response, error_response, validation_error_response,
    not_found_response, server_error_response, parse_body, path_param, query_params
)
from dealscope.utils.database import db
from dealscope.utils.auth import require_role
from dealscope.utils.rate_limiter import rate_limit, get_ip_identifier, PUBLIC_FORM_RATE_LIMIT
from dealscope.handlers.analytics import track

logger = logging.getLogger()
logger.setLevel(logging.INFO)

CONTACT_STATUSES = ('pending', 'in_progress', 'completed')


class ContactRequestCreate(BaseModel):
    name: str
    email: EmailStr
    phone: Optional[str] = None
    message: str

    @field_validator('name', 'message')
    @classmethod
    def not_blank(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Field is required')
        return v


class ContactRequestUpdate(BaseModel):
    status: Optional[str] = None
    assigned_to: Optional[str] = None

    @field_validator('status')
    @classmethod
    def validate_status(cls, v):
        if v is not None and v not in CONTACT_STATUSES:
            raise ValueError(f'Status must be one of: {list(CONTACT_STATUSES)}')
        return v


class NoteCreate(BaseModel):
    content: str

    @field_validator('content')
    @classmethod
    def not_blank(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Note cannot be empty')
        return v


@rate_limit(**PUBLIC_FORM_RATE_LIMIT, identifier_func=get_ip_identifier)
def submit_contact_request(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Public contact form."""
    try:
        body = parse_body(event)

        try:
            form = ContactRequestCreate(**body)
        except ValidationError as e:
            return validation_error_response(e.errors())

        now = datetime.utcnow().isoformat()
        request = {
            'request_id': str(uuid.uuid4()),
            'name': form.name,
            'email': form.email.lower(),
            'phone': form.phone,
            'message': form.message,
            'status': 'pending',
            'assigned_to': None,
            'created_at': now,
            'updated_at': now
        }

        if not db.add_contact_request(request):
            return server_error_response("Failed to submit request")

        track(None, 'customer_interaction', 'contact_request_submitted')

        return success_response(
            data={'request_id': request['request_id']},
            message="Thanks for reaching out! We'll get back to you shortly.",
            status_code=201
        )

    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"Contact request error: {str(e)}")
        return server_error_response("Internal server error")


@require_role('analyst')
def list_contact_requests(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Contact requests newest first, optionally by status."""
    try:
        status = query_params(event).get('status')
        if status and status not in CONTACT_STATUSES:
            return error_response(f"Status must be one of: {list(CONTACT_STATUSES)}", 400)

        requests = db.list_contact_requests()
        if status:
            requests = [r for r in requests if r.get('status') == status]
        requests.sort(key=lambda r: r.get('created_at') or '', reverse=True)

        return success_response(
            data={'requests': requests, 'count': len(requests)},
            message="Contact requests retrieved successfully"
        )

    except Exception as e:
        logger.error(f"List contact requests error: {str(e)}")
        return server_error_response("Internal server error")


@require_role('analyst')
def update_contact_request(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Move a request across the board or assign it."""
    try:
        request_id = path_param(event, 'requestId')
        body = parse_body(event)

        try:
            update = ContactRequestUpdate(**body)
        except ValidationError as e:
            return validation_error_response(e.errors())

        if not db.get_contact_request(request_id):
            return not_found_response("Contact request not found")

        updates = update.model_dump(exclude_unset=True)
        if not updates:
            return error_response("No valid fields to update", 400)
        updates['updated_at'] = datetime.utcnow().isoformat()

        updated = db.update_contact_request(request_id, updates)
        if updated is None:
            return server_error_response("Failed to update request")

        return success_response(data=updated, message="Contact request updated")

    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"Update contact request error: {str(e)}")
        return server_error_response("Internal server error")


@require_role('analyst')
def add_contact_note(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Attach an internal note to a request."""
    try:
        request_id = path_param(event, 'requestId')
        body = parse_body(event)

        try:
            note_data = NoteCreate(**body)
        except ValidationError as e:
            return validation_error_response(e.errors())

        if not db.get_contact_request(request_id):
            return not_found_response("Contact request not found")

        now = datetime.utcnow().isoformat()
        note = {
            'request_id': request_id,
            'note_id': f"{now}#{uuid.uuid4().hex[:12]}",
            'user_id': user_info['user_id'],
            'content': note_data.content,
            'created_at': now
        }

        if not db.add_contact_note(note):
            return server_error_response("Failed to add note")

        return success_response(data=note, message="Note added", status_code=201)

    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"Add contact note error: {str(e)}")
        return server_error_response("Internal server error")


@require_role('analyst')
def list_contact_notes(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Notes of a request, newest first."""
    try:
        request_id = path_param(event, 'requestId')
        if not db.get_contact_request(request_id):
            return not_found_response("Contact request not found")

        notes = sorted(db.list_contact_notes(request_id), key=lambda n: n.get('created_at') or '', reverse=True)
        return success_response(data={'notes': notes, 'count': len(notes)}, message="Notes retrieved successfully")

    except Exception as e:
        logger.error(f"List contact notes error: {str(e)}")
        return server_error_response("Internal server error")
