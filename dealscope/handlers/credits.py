"""
Credit wallet handlers and the internal credit ledger operations.
"""

import json
import logging
from typing import Dict, Any, Optional
from pydantic import ValidationError

from dealscope.utils.response import (
    success_response, error_response, validation_error_response,
    not_found_response, server_error_response, error_from_exception, parse_body
)
from dealscope.utils.database import db
from dealscope.utils.auth import require_auth, require_role
from dealscope.utils.errors import InsufficientCreditsError, DealScopeError
from dealscope.models.credits import CreditAdjustment, new_wallet, new_transaction
from dealscope.handlers.analytics import track

logger = logging.getLogger()
logger.setLevel(logging.INFO)


def ensure_wallet(user_id: str) -> Dict[str, Any]:
    """Return the wallet of a user, creating an empty basic one if missing."""
    wallet = db.get_wallet(user_id)
    if wallet:
        return wallet

    wallet = new_wallet(user_id)
    if not db.create_wallet(wallet):
        # Lost a creation race; the other writer's wallet wins
        wallet = db.get_wallet(user_id) or wallet
    return wallet


def add_credits(
    user_id: str,
    amount: int,
    transaction_type: str = 'purchase',
    payment_intent_id: Optional[str] = None,
    notes: Optional[str] = None
) -> int:
    """Credit a wallet and record the transaction; returns the new balance."""
    balance = db.add_credits(user_id, amount)
    if balance is None:
        raise DealScopeError(f"Failed to add credits for {user_id}")

    db.add_credit_transaction(new_transaction(
        user_id, amount, transaction_type,
        payment_intent_id=payment_intent_id, notes=notes
    ))
    logger.info(f"Added {amount} credits to {user_id}, balance {balance}")
    return balance


def debit_credits(user_id: str, amount: int, reason: str, error_message: Optional[str] = None) -> int:
    """
    Remove credits if the balance covers them; returns the new balance.

    Raises InsufficientCreditsError otherwise. The balance check and the
    debit are one conditional write.
    """
    balance = db.debit_credits(user_id, amount)
    if balance is None:
        raise InsufficientCreditsError(error_message or f"You need {amount} credits for this action")

    db.add_credit_transaction(new_transaction(user_id, -amount, 'debit', notes=reason))
    logger.info(f"Debited {amount} credits from {user_id} ({reason}), balance {balance}")
    return balance


@require_auth
def get_wallet(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Get the caller's credit wallet."""
    try:
        wallet = ensure_wallet(user_info['user_id'])
        return success_response(data=wallet, message="Wallet retrieved successfully")

    except Exception as e:
        logger.error(f"Get wallet error: {str(e)}")
        return server_error_response("Internal server error")


@require_auth
def list_transactions(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """List the caller's credit transactions, newest first."""
    try:
        transactions = db.list_credit_transactions(user_info['user_id'])
        transactions.sort(key=lambda t: t.get('created_at') or '', reverse=True)

        return success_response(
            data={'transactions': transactions, 'count': len(transactions)},
            message="Transactions retrieved successfully"
        )

    except Exception as e:
        logger.error(f"List transactions error: {str(e)}")
        return server_error_response("Internal server error")


@require_role('analyst')
def adjust_credits(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Add (positive amount) or remove (negative amount) credits for a customer."""
    try:
        body = parse_body(event)

        try:
            adjustment = CreditAdjustment(**body)
        except ValidationError as e:
            return validation_error_response(e.errors())

        if not db.get_user(adjustment.user_id):
            return not_found_response("User not found")

        notes = adjustment.notes or f"Adjusted by analyst {user_info['user_id']}"
        ensure_wallet(adjustment.user_id)

        if adjustment.amount > 0:
            balance = add_credits(adjustment.user_id, adjustment.amount, 'purchase', notes=notes)
        else:
            balance = debit_credits(
                adjustment.user_id, -adjustment.amount, notes,
                error_message="Adjustment would take the balance below zero"
            )

        track(user_info['user_id'], 'customer_interaction', 'credits_adjusted', {
            'customer_id': adjustment.user_id,
            'amount': adjustment.amount
        })

        return success_response(
            data={'user_id': adjustment.user_id, 'credits': balance},
            message="Credits updated successfully"
        )

    except DealScopeError as e:
        return error_from_exception(e)
    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"Adjust credits error: {str(e)}")
        return server_error_response("Internal server error")
