"""
Public lead capture (lead magnet and newsletter forms).
"""

import json
import logging
from typing import Dict, Any, Optional
from pydantic import BaseModel, EmailStr, ValidationError

from dealscope.utils.response import (
    success_response, error_response, validation_error_response,
    server_error_response, parse_body
)
from dealscope.utils.database import db
from dealscope.utils.rate_limiter import rate_limit, get_ip_identifier, PUBLIC_FORM_RATE_LIMIT
from dealscope.models.pipeline import new_entry
from dealscope.handlers.analytics import track

logger = logging.getLogger()
logger.setLevel(logging.INFO)


class LeadCapture(BaseModel):
    """Lead capture form model."""
    email: EmailStr
    name: Optional[str] = None
    phone: Optional[str] = None
    source: str = 'lead_magnet'


@rate_limit(**PUBLIC_FORM_RATE_LIMIT, identifier_func=get_ip_identifier)
def capture_lead(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Add an email to the pipeline as a new lead."""
    try:
        body = parse_body(event)

        try:
            lead = LeadCapture(**body)
        except ValidationError as e:
            return validation_error_response(e.errors())

        if db.get_pipeline_entry_by_email(lead.email):
            return error_response(
                message="This email is already subscribed",
                status_code=409,
                error_code="ALREADY_SUBSCRIBED"
            )

        entry = new_entry(lead.email, status='lead', source=lead.source, name=lead.name, phone=lead.phone)
        if not db.add_pipeline_entry(entry):
            return server_error_response("Failed to save lead")

        track(None, 'customer_interaction', 'lead_captured', {'source': lead.source})

        return success_response(
            data={'email': entry['email']},
            message="Thanks! Check your inbox for your free guide.",
            status_code=201
        )

    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"Capture lead error: {str(e)}")
        return server_error_response("Internal server error")
