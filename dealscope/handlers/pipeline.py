"""
Client pipeline (CRM board) handlers.
"""

import json
import logging
from typing import Dict, Any, Optional
from pydantic import ValidationError

from dealscope.utils.response import (
    success_response, error_response, validation_error_response,
    not_found_response, server_error_response, parse_body, path_param, query_params
)
from dealscope.utils.database import db
from dealscope.utils.auth import require_role
from dealscope.models.pipeline import (
    COLUMN_IDS, DATE_FILTERS, LeadCreate, EntryMove,
    new_entry, move_updates, is_forward_move, filter_entries, group_by_column
)

logger = logging.getLogger()
logger.setLevel(logging.INFO)


def record_stage(email: str, status: str, source: str = 'system', name: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """
    Advance the pipeline entry of an email to `status`, creating it if needed.

    Entries never move backwards (churn excepted). Failures are logged and
    never propagate to the caller's flow.
    """
    try:
        entry = db.get_pipeline_entry_by_email(email)
        if not entry:
            entry = new_entry(email, status=status, source=source, name=name)
            db.add_pipeline_entry(entry)
            return entry

        if not is_forward_move(entry.get('status'), status):
            return entry

        return db.update_pipeline_entry(entry['entry_id'], move_updates(entry, status))

    except Exception as e:
        logger.error(f"Failed to record pipeline stage {status} for {email}: {str(e)}")
        return None


@require_role('analyst')
def get_board(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Pipeline board grouped by column, with search / status / date filters."""
    try:
        params = query_params(event)
        status = params.get('status', 'all')
        date = params.get('date', 'all')

        if status != 'all' and status not in COLUMN_IDS:
            return error_response(f"Status must be 'all' or one of: {COLUMN_IDS}", 400)
        if date not in DATE_FILTERS:
            return error_response(f"Date filter must be one of: {list(DATE_FILTERS)}", 400)

        entries = filter_entries(
            db.list_pipeline_entries(),
            search=params.get('search', ''),
            status=status,
            date=date
        )

        return success_response(
            data={'columns': group_by_column(entries), 'total': len(entries)},
            message="Pipeline retrieved successfully"
        )

    except Exception as e:
        logger.error(f"Get pipeline error: {str(e)}")
        return server_error_response("Internal server error")


@require_role('analyst')
def add_lead(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Add an entry to the board."""
    try:
        body = parse_body(event)

        try:
            lead = LeadCreate(**body)
        except ValidationError as e:
            return validation_error_response(e.errors())

        if db.get_pipeline_entry_by_email(lead.email):
            return error_response("This email is already in the pipeline", 409, "DUPLICATE_ENTRY")

        entry = new_entry(lead.email, lead.status, lead.source, lead.name, lead.phone)
        if not db.add_pipeline_entry(entry):
            return server_error_response("Failed to add entry")

        return success_response(data=entry, message="Entry added", status_code=201)

    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"Add lead error: {str(e)}")
        return server_error_response("Internal server error")


@require_role('analyst')
def move_entry(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Move an entry to another column."""
    try:
        entry_id = path_param(event, 'entryId')
        body = parse_body(event)

        try:
            move = EntryMove(**body)
        except ValidationError as e:
            return validation_error_response(e.errors())

        entry = db.get_pipeline_entry(entry_id)
        if not entry:
            return not_found_response("Pipeline entry not found")

        if entry.get('status') == move.status:
            return success_response(data=entry, message="Entry already in this column")

        updated = db.update_pipeline_entry(entry_id, move_updates(entry, move.status))
        if updated is None:
            return server_error_response("Failed to move entry")

        return success_response(data=updated, message="Entry moved")

    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"Move entry error: {str(e)}")
        return server_error_response("Internal server error")


@require_role('analyst')
def delete_entry(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Remove an entry from the board."""
    try:
        entry_id = path_param(event, 'entryId')
        if not db.get_pipeline_entry(entry_id):
            return not_found_response("Pipeline entry not found")

        if not db.delete_pipeline_entry(entry_id):
            return server_error_response("Failed to delete entry")

        return success_response(message="Entry deleted")

    except Exception as e:
        logger.error(f"Delete entry error: {str(e)}")
        return server_error_response("Internal server error")
