"""
Deal data models and validation.
"""

from pydantic import BaseModel, field_validator
from typing import Optional, Dict, Any, List
from datetime import datetime
import uuid

from dealscope.utils.constants import ANALYSIS_DEPTHS

DEAL_STATUSES = ('pending', 'in_progress', 'completed')


class DealCreate(BaseModel):
    """Deal submission request model."""
    address: str
    analysis_depth: str = 'basic'

    @field_validator('address')
    @classmethod
    def validate_address(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Address is required')
        return v

    @field_validator('analysis_depth')
    @classmethod
    def validate_depth(cls, v):
        if v not in ANALYSIS_DEPTHS:
            raise ValueError(f'Analysis depth must be one of: {list(ANALYSIS_DEPTHS)}')
        return v


class MessageCreate(BaseModel):
    content: str

    @field_validator('content')
    @classmethod
    def validate_content(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Message cannot be empty')
        return v


class DocumentUpload(BaseModel):
    name: str
    content_type: str = 'application/octet-stream'

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        v = v.strip().replace('/', '_')
        if not v:
            raise ValueError('Document name is required')
        return v


def credit_cost(analysis_depth: str) -> int:
    return ANALYSIS_DEPTHS[analysis_depth]['credit_cost']


def new_deal(investor_id: str, address: str, analysis_depth: str) -> Dict[str, Any]:
    now = datetime.utcnow().isoformat()
    return {
        'deal_id': str(uuid.uuid4()),
        'investor_id': investor_id,
        'address': address,
        'status': 'pending',
        'progress': 0,
        'analysis_depth': analysis_depth,
        'is_priority': analysis_depth == 'premium',
        'created_at': now,
        'updated_at': now
    }


def is_deleted(deal: Optional[Dict[str, Any]]) -> bool:
    return bool(deal and deal.get('deleted_at'))


def can_read(deal: Dict[str, Any], user_info: Dict[str, Any]) -> bool:
    """Investors see their own deals, analysts see every deal."""
    return user_info.get('role') == 'analyst' or deal.get('investor_id') == user_info.get('user_id')


def current_documents(documents: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Drop document versions that have been replaced."""
    return [doc for doc in documents if not doc.get('replaced_by')]


def newest_first(items: List[Dict[str, Any]], field: str = 'created_at') -> List[Dict[str, Any]]:
    return sorted(items, key=lambda item: item.get(field) or '', reverse=True)
