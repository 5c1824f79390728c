"""
Credit wallet and transaction models.
"""

from pydantic import BaseModel, field_validator
from typing import Optional, Dict, Any
from datetime import datetime
import uuid

WALLET_TIERS = ('basic', 'pro', 'enterprise')
TRANSACTION_TYPES = ('purchase', 'debit', 'refund')
TRANSACTION_STATUSES = ('pending', 'completed', 'failed')


class CreditAdjustment(BaseModel):
    """Analyst adjustment of a customer's balance."""
    user_id: str
    amount: int
    notes: Optional[str] = None

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v):
        if v == 0:
            raise ValueError('Amount must not be zero')
        return v


def new_wallet(user_id: str, credits: int = 0, tier: str = 'basic') -> Dict[str, Any]:
    if tier not in WALLET_TIERS:
        raise ValueError(f'Unknown wallet tier: {tier}')

    return {
        'user_id': user_id,
        'credits': credits,
        'tier': tier,
        'rollover_credits': 0,
        'updated_at': datetime.utcnow().isoformat()
    }


def new_transaction(
    user_id: str,
    amount: int,
    transaction_type: str,
    status: str = 'completed',
    payment_intent_id: Optional[str] = None,
    notes: Optional[str] = None
) -> Dict[str, Any]:
    if transaction_type not in TRANSACTION_TYPES:
        raise ValueError(f'Unknown transaction type: {transaction_type}')
    if status not in TRANSACTION_STATUSES:
        raise ValueError(f'Unknown transaction status: {status}')

    now = datetime.utcnow().isoformat()
    return {
        'user_id': user_id,
        # Sort key; timestamp prefix keeps transactions in creation order
        'transaction_id': f"{now}#{uuid.uuid4().hex[:12]}",
        'amount': amount,
        'type': transaction_type,
        'status': status,
        'payment_intent_id': payment_intent_id,
        'notes': notes,
        'created_at': now
    }
