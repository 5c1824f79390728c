"""
Analyst calendar handlers.
"""

import json
import logging
import uuid
from typing import Dict, Any, Optional
from datetime import datetime, timezone
from pydantic import BaseModel, EmailStr, field_validator, model_validator, ValidationError

from dealscope.utils.response import (
    success_response, error_response, validation_error_response,
    not_found_response, server_error_response, parse_body, path_param, query_params
)
from dealscope.utils.database import db
from dealscope.utils.auth import require_role

logger = logging.getLogger()
logger.setLevel(logging.INFO)

APPOINTMENT_STATUSES = ('pending', 'confirmed', 'completed')


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Drop the offset of an aware datetime after converting it to UTC."""
    if value is not None and value.tzinfo:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def check_status(v):
    if v is not None and v not in APPOINTMENT_STATUSES:
        raise ValueError(f'Status must be one of: {list(APPOINTMENT_STATUSES)}')
    return v


class AppointmentCreate(BaseModel):
    title: str
    start_time: datetime
    end_time: datetime
    description: Optional[str] = None
    client_name: Optional[str] = None
    client_email: Optional[EmailStr] = None
    deal_id: Optional[str] = None
    status: str = 'pending'

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_times(cls, v):
        return naive_utc(v)

    @field_validator('status')
    @classmethod
    def validate_status(cls, v):
        return check_status(v)

    @model_validator(mode='after')
    def check_times(self):
        if self.end_time <= self.start_time:
            raise ValueError('End time must be after start time')
        return self


class AppointmentUpdate(BaseModel):
    title: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    description: Optional[str] = None
    client_name: Optional[str] = None
    client_email: Optional[EmailStr] = None
    status: Optional[str] = None

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_times(cls, v):
        return naive_utc(v)

    @field_validator('status')
    @classmethod
    def validate_status(cls, v):
        return check_status(v)


def parse_time(value: str) -> datetime:
    """Parse an ISO timestamp as naive UTC."""
    return naive_utc(datetime.fromisoformat(value.replace('Z', '+00:00')))


def serialize(model: BaseModel, **kwargs) -> Dict[str, Any]:
    return model.model_dump(mode='json', **kwargs)


@require_role('analyst')
def create_appointment(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Book an appointment on the caller's calendar."""
    try:
        body = parse_body(event)

        try:
            appointment_data = AppointmentCreate(**body)
        except ValidationError as e:
            return validation_error_response(e.errors())

        now = datetime.utcnow().isoformat()
        appointment = dict(
            serialize(appointment_data),
            appointment_id=str(uuid.uuid4()),
            analyst_id=user_info['user_id'],
            created_at=now,
            updated_at=now
        )

        if not db.add_appointment(appointment):
            return server_error_response("Failed to create appointment")

        return success_response(data=appointment, message="Appointment created", status_code=201)

    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"Create appointment error: {str(e)}")
        return server_error_response("Internal server error")


@require_role('analyst')
def list_appointments(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Appointments ordered by start, optionally within [from, to)."""
    try:
        params = query_params(event)
        appointments = db.list_appointments(params.get('analyst_id'))

        try:
            start = parse_time(params['from']) if params.get('from') else None
            end = parse_time(params['to']) if params.get('to') else None
        except ValueError:
            return error_response("from and to must be ISO timestamps", 400)

        appointments = [a for a in appointments if a.get('start_time')]
        if start:
            appointments = [a for a in appointments if parse_time(a['start_time']) >= start]
        if end:
            appointments = [a for a in appointments if parse_time(a['start_time']) < end]

        appointments.sort(key=lambda a: parse_time(a['start_time']))
        return success_response(
            data={'appointments': appointments, 'count': len(appointments)},
            message="Appointments retrieved successfully"
        )

    except Exception as e:
        logger.error(f"List appointments error: {str(e)}")
        return server_error_response("Internal server error")


@require_role('analyst')
def update_appointment(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Reschedule or change the status of an appointment."""
    try:
        appointment_id = path_param(event, 'appointmentId')
        body = parse_body(event)

        try:
            update = AppointmentUpdate(**body)
        except ValidationError as e:
            return validation_error_response(e.errors())

        existing = db.get_appointment(appointment_id)
        if not existing:
            return not_found_response("Appointment not found")

        updates = serialize(update, exclude_unset=True)
        if not updates:
            return error_response("No valid fields to update", 400)

        start = updates.get('start_time', existing.get('start_time'))
        end = updates.get('end_time', existing.get('end_time'))
        if parse_time(end) <= parse_time(start):
            return error_response("End time must be after start time", 400)

        updates['updated_at'] = datetime.utcnow().isoformat()
        updated = db.update_appointment(appointment_id, updates)
        if updated is None:
            return server_error_response("Failed to update appointment")

        return success_response(data=updated, message="Appointment updated")

    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"Update appointment error: {str(e)}")
        return server_error_response("Internal server error")


@require_role('analyst')
def delete_appointment(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Cancel an appointment."""
    try:
        appointment_id = path_param(event, 'appointmentId')
        if not db.get_appointment(appointment_id):
            return not_found_response("Appointment not found")

        if not db.delete_appointment(appointment_id):
            return server_error_response("Failed to delete appointment")

        return success_response(message="Appointment deleted")

    except Exception as e:
        logger.error(f"Delete appointment error: {str(e)}")
        return server_error_response("Internal server error")
