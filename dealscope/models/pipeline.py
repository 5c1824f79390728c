"""
Client pipeline (CRM board) models.

An entry's `status` is the board column it sits in.
"""

import calendar
from pydantic import BaseModel, EmailStr, field_validator
from typing import Optional, Dict, Any, List
from datetime import datetime, timedelta
import uuid

PIPELINE_COLUMNS = [
    {'id': 'lead', 'title': 'Leads'},
    {'id': 'signup', 'title': 'Sign Ups'},
    {'id': 'trial', 'title': 'Free Trial'},
    {'id': 'checkout_started', 'title': 'Checkout Started'},
    {'id': 'paying_customer', 'title': 'Paying Customers'},
    {'id': 'churned', 'title': 'Churned'},
]

COLUMN_IDS = [column['id'] for column in PIPELINE_COLUMNS]
DATE_FILTERS = ('all', 'today', 'week', 'month')


def validate_column(v: str) -> str:
    if v not in COLUMN_IDS:
        raise ValueError(f'Status must be one of: {COLUMN_IDS}')
    return v


class LeadCreate(BaseModel):
    """Lead added by an analyst or captured from a public form."""
    email: EmailStr
    name: Optional[str] = None
    phone: Optional[str] = None
    source: str = 'manual'
    status: str = 'lead'

    @field_validator('status')
    @classmethod
    def validate_status(cls, v):
        return validate_column(v)


class EntryMove(BaseModel):
    status: str

    @field_validator('status')
    @classmethod
    def validate_status(cls, v):
        return validate_column(v)


def new_entry(
    email: str,
    status: str = 'lead',
    source: str = 'manual',
    name: Optional[str] = None,
    phone: Optional[str] = None
) -> Dict[str, Any]:
    now = datetime.utcnow().isoformat()
    return {
        'entry_id': str(uuid.uuid4()),
        'email': email.strip().lower(),
        'status': status,
        'source': source,
        'metadata': {'name': name, 'phone': phone},
        'converted_from': None,
        'converted_at': None,
        'last_activity': now,
        'created_at': now
    }


def move_updates(entry: Dict[str, Any], status: str) -> Dict[str, Any]:
    """Attributes written when an entry changes column."""
    now = datetime.utcnow().isoformat()
    return {
        'status': status,
        'converted_from': entry.get('status'),
        'converted_at': now,
        'last_activity': now
    }


def is_forward_move(current: str, target: str) -> bool:
    """Funnel moves only go right, except that anyone can churn."""
    if target == 'churned':
        return current != 'churned'
    if current not in COLUMN_IDS:
        return True
    return COLUMN_IDS.index(target) > COLUMN_IDS.index(current)


def one_month_before(now: datetime) -> datetime:
    year, month = (now.year, now.month - 1) if now.month > 1 else (now.year - 1, 12)
    day = min(now.day, calendar.monthrange(year, month)[1])
    return now.replace(year=year, month=month, day=day)


def matches_date(created_at: Optional[str], date_filter: str, now: datetime) -> bool:
    if date_filter == 'all':
        return True
    if not created_at:
        return False

    created = datetime.fromisoformat(created_at.replace('Z', '+00:00')).replace(tzinfo=None)
    if date_filter == 'today':
        return created.date() == now.date()
    if date_filter == 'week':
        return created >= now - timedelta(days=7)
    if date_filter == 'month':
        return created >= one_month_before(now)
    return True


def matches_search(entry: Dict[str, Any], search: str) -> bool:
    if not search:
        return True
    term = search.lower()
    metadata = entry.get('metadata') or {}
    return (
        term in (entry.get('email') or '').lower()
        or term in (metadata.get('name') or '').lower()
        or term in (metadata.get('phone') or '').lower()
    )


def filter_entries(
    entries: List[Dict[str, Any]],
    search: str = '',
    status: str = 'all',
    date: str = 'all',
    now: Optional[datetime] = None
) -> List[Dict[str, Any]]:
    now = now or datetime.utcnow()
    return [
        entry for entry in entries
        if matches_search(entry, search)
        and (status == 'all' or entry.get('status') == status)
        and matches_date(entry.get('created_at'), date, now)
    ]


def group_by_column(entries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Board columns in funnel order, each holding its entries newest first."""
    ordered = sorted(entries, key=lambda entry: entry.get('created_at') or '', reverse=True)
    board = []
    for column in PIPELINE_COLUMNS:
        column_entries = [entry for entry in ordered if entry.get('status') == column['id']]
        board.append(dict(column, entries=column_entries, count=len(column_entries)))
    return board
