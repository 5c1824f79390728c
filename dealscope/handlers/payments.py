"""
Billing handlers using Stripe: product catalog, checkout and webhooks.
"""

import os
import json
import base64
import logging
import stripe
from typing import Dict, Any, Optional
from datetime import datetime

from dealscope.utils.response import (
    success_response, error_response, not_found_response, server_error_response, parse_body
)
from dealscope.utils.database import db
from dealscope.utils.auth import require_auth
from dealscope.utils.rate_limiter import rate_limit, get_user_identifier, STANDARD_RATE_LIMIT
from dealscope.utils.constants import CREDIT_PACKS, SUBSCRIPTION_PLANS, ANALYSIS_DEPTHS, get_product_by_price
from dealscope.handlers.credits import add_credits, ensure_wallet
from dealscope.handlers.pipeline import record_stage
from dealscope.handlers.analytics import track

logger = logging.getLogger()
logger.setLevel(logging.INFO)

# Initialize Stripe
stripe.api_key = os.getenv('STRIPE_SECRET_KEY')
webhook_secret = os.getenv('STRIPE_WEBHOOK_SECRET')

CHECKOUT_MODES = ('payment', 'subscription')


def stripe_error_response(e: Exception) -> Dict[str, Any]:
    logger.error(f"Stripe error: {str(e)}")
    return error_response("Payment provider error, please try again", 502, "PAYMENT_PROVIDER_ERROR")


def request_origin(event: Dict[str, Any]) -> str:
    headers = event.get('headers') or {}
    origin = headers.get('origin') or headers.get('Origin')
    return (origin or os.getenv('APP_URL', 'https://dealscope.io')).rstrip('/')


def get_or_create_customer(user_id: str) -> Optional[str]:
    """Stripe customer id of a user, creating the customer on first checkout."""
    mapping = db.get_stripe_customer(user_id)
    if mapping:
        return mapping['customer_id']

    user_data = db.get_user(user_id)
    if not user_data:
        return None

    customer = stripe.Customer.create(
        email=user_data['email'],
        name=user_data.get('name') or None,
        metadata={'user_id': user_id}
    )

    if not db.create_stripe_customer(user_id, customer.id):
        logger.error(f"Failed to store Stripe customer {customer.id} for {user_id}")
    return customer.id


def list_products(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Public pricing catalog."""
    return success_response(
        data={
            'credit_packs': CREDIT_PACKS,
            'subscription_plans': SUBSCRIPTION_PLANS,
            'analysis_depths': ANALYSIS_DEPTHS
        },
        message="Products retrieved successfully"
    )


@rate_limit(**STANDARD_RATE_LIMIT, identifier_func=get_user_identifier)
@require_auth
def create_checkout(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Create a Stripe Checkout Session for a credit pack or a plan."""
    try:
        body = parse_body(event)
        price_id = body.get('priceId')
        mode = body.get('mode')

        if not price_id or not mode:
            return error_response("priceId and mode are required", 400)
        if mode not in CHECKOUT_MODES:
            return error_response(f"Mode must be one of: {list(CHECKOUT_MODES)}", 400)

        product = get_product_by_price(price_id)
        if not product:
            return error_response("Unknown price", 400)
        if product['mode'] != mode:
            return error_response(f"{product['name']} must be purchased in {product['mode']} mode", 400)

        user_id = user_info['user_id']

        try:
            customer_id = get_or_create_customer(user_id)
            if not customer_id:
                return not_found_response("User not found")

            origin = request_origin(event)
            session = stripe.checkout.Session.create(
                customer=customer_id,
                client_reference_id=user_id,
                line_items=[{'price': price_id, 'quantity': 1}],
                mode=mode,
                success_url=f"{origin}/thank-you",
                cancel_url=f"{origin}/credits/purchase",
                automatic_tax={'enabled': True},
                customer_update={'address': 'auto', 'name': 'auto'},
                billing_address_collection='required',
                metadata={'user_id': user_id, 'price_id': price_id}
            )
        except stripe.StripeError as e:
            return stripe_error_response(e)

        user_data = db.get_user(user_id)
        if user_data:
            record_stage(user_data['email'], 'checkout_started', source='checkout')

        track(user_id, 'revenue', 'checkout_started', {'price_id': price_id, 'mode': mode})

        return success_response(
            data={'url': session.url, 'session_id': session.id},
            message="Checkout session created successfully"
        )

    except json.JSONDecodeError:
        return error_response("Invalid JSON in request body", 400)
    except Exception as e:
        logger.error(f"Checkout session error: {str(e)}")
        return server_error_response("Internal server error")


def stripe_webhook(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Verify and apply a Stripe webhook event."""
    try:
        payload = event.get('body') or ''
        if event.get('isBase64Encoded'):
            payload = base64.b64decode(payload).decode('utf-8')

        headers = event.get('headers') or {}
        sig_header = headers.get('Stripe-Signature') or headers.get('stripe-signature')
        if not sig_header:
            return error_response("Missing stripe-signature header", 400)

        try:
            stripe.Webhook.construct_event(payload, sig_header, webhook_secret)
        except ValueError:
            return error_response("Invalid payload", 400)
        except stripe.SignatureVerificationError:
            logger.warning("Webhook signature verification failed")
            return error_response("Invalid signature", 400)

        # Work on plain dicts once the signature is verified
        stripe_event = json.loads(payload)
        event_type = stripe_event['type']
        data_object = stripe_event['data']['object']
        logger.info(f"Stripe event {stripe_event.get('id')}: {event_type}")

        result = {'received': True}
        if event_type == 'checkout.session.completed':
            result['duplicate'] = not handle_checkout_completed(data_object)
        elif event_type in ('customer.subscription.created', 'customer.subscription.updated'):
            handle_subscription_change(data_object)
        elif event_type == 'customer.subscription.deleted':
            handle_subscription_deleted(data_object)

        return success_response(data=result, message="Webhook handled successfully")

    except stripe.StripeError as e:
        return stripe_error_response(e)
    except Exception as e:
        logger.error(f"Webhook error: {str(e)}")
        return server_error_response("Webhook processing failed")


def resolve_user_id(session: Dict[str, Any]) -> Optional[str]:
    return (
        session.get('client_reference_id')
        or (session.get('metadata') or {}).get('user_id')
        or (db.get_user_id_for_customer(session['customer']) if session.get('customer') else None)
    )


def line_item_credits(item) -> int:
    """Credits granted by a line item: product metadata first, then the local catalog."""
    price = item['price']
    try:
        credits = int(price['product']['metadata']['credits'])
    except (KeyError, TypeError, ValueError):
        product = get_product_by_price(price['id'])
        credits = product['credits'] if product else 0
    return credits * (item['quantity'] or 1)


def handle_checkout_completed(session: Dict[str, Any]) -> bool:
    """
    Record the order and grant its credits.

    The order stays pending until the credits are granted, so a delivery that
    failed part way is processed again when Stripe retries it. Returns False
    when the session was already completed (webhook replay).
    """
    user_id = resolve_user_id(session)
    now = datetime.utcnow().isoformat()

    order = {
        'checkout_session_id': session['id'],
        'payment_intent_id': session.get('payment_intent'),
        'customer_id': session.get('customer'),
        'user_id': user_id,
        'mode': session.get('mode'),
        'amount_subtotal': session.get('amount_subtotal'),
        'amount_total': session.get('amount_total'),
        'currency': session.get('currency'),
        'payment_status': session.get('payment_status'),
        'status': 'pending',
        'created_at': now
    }
    if not db.create_order(order):
        logger.info(f"Checkout session {session['id']} already processed")
        return False

    if not user_id:
        logger.error(f"No user for checkout session {session['id']}")
        db.complete_order(session['id'], {'completed_at': now, 'credits': 0})
        return True

    line_items = stripe.checkout.Session.list_line_items(session['id'], expand=['data.price.product'])
    items = list(line_items['data'])

    if session.get('mode') == 'subscription' and session.get('customer'):
        price_id = items[0]['price']['id'] if items else None
        plan = get_product_by_price(price_id) if price_id else None
        db.upsert_subscription(session['customer'], {
            'user_id': user_id,
            'subscription_id': session.get('subscription'),
            'price_id': price_id,
            'amount': plan['price'] if plan else 0,
            'status': 'active'
        })
        if plan:
            ensure_wallet(user_id)
            db.update_wallet(user_id, {'tier': plan['tier']})

    total_credits = 0
    for item in items:
        credits = line_item_credits(item)
        if credits > 0:
            add_credits(user_id, credits, 'purchase', payment_intent_id=session.get('payment_intent'))
            total_credits += credits

    db.complete_order(session['id'], {'completed_at': now, 'credits': total_credits})

    email = (session.get('customer_details') or {}).get('email')
    if not email:
        user_data = db.get_user(user_id)
        email = user_data['email'] if user_data else None
    if email:
        record_stage(email, 'paying_customer', source='checkout')

    track(user_id, 'revenue', 'checkout_completed', {
        'session_id': session['id'],
        'amount_total': session.get('amount_total'),
        'credits': total_credits
    })
    return True


def subscription_fields(subscription: Dict[str, Any]) -> Dict[str, Any]:
    items = (subscription.get('items') or {}).get('data') or []
    first_item = items[0] if items else {}
    price_id = (first_item.get('price') or {}).get('id')
    plan = get_product_by_price(price_id) if price_id else None

    fields = {
        'subscription_id': subscription['id'],
        'status': subscription.get('status'),
        'price_id': price_id,
        'amount': plan['price'] if plan else 0,
        # Newer API versions report the period on the subscription item
        'current_period_start': subscription.get('current_period_start') or first_item.get('current_period_start'),
        'current_period_end': subscription.get('current_period_end') or first_item.get('current_period_end'),
        'cancel_at_period_end': bool(subscription.get('cancel_at_period_end'))
    }

    payment_method = subscription.get('default_payment_method')
    if isinstance(payment_method, dict) and payment_method.get('card'):
        fields['payment_method_brand'] = payment_method['card'].get('brand')
        fields['payment_method_last4'] = payment_method['card'].get('last4')

    return fields


def handle_subscription_change(subscription: Dict[str, Any]) -> None:
    customer_id = subscription['customer']
    fields = subscription_fields(subscription)

    user_id = db.get_user_id_for_customer(customer_id)
    if user_id:
        fields['user_id'] = user_id

    db.upsert_subscription(customer_id, fields)
    track(user_id, 'subscription', 'subscription_updated', {'status': fields['status']})


def handle_subscription_deleted(subscription: Dict[str, Any]) -> None:
    customer_id = subscription['customer']
    db.upsert_subscription(customer_id, {
        'subscription_id': subscription['id'],
        'status': 'canceled',
        'deleted_at': datetime.utcnow().isoformat()
    })

    user_id = db.get_user_id_for_customer(customer_id)
    user_data = db.get_user(user_id) if user_id else None
    if user_data:
        record_stage(user_data['email'], 'churned', source='subscription')

    track(user_id, 'subscription', 'subscription_canceled', {'customer_id': customer_id})


@require_auth
def get_billing_info(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Wallet, subscription and plan of the caller."""
    try:
        user_id = user_info['user_id']
        wallet = ensure_wallet(user_id)

        billing_info = {
            'credits': wallet.get('credits', 0),
            'tier': wallet.get('tier', 'basic'),
            'subscription': None,
            'plan': None
        }

        mapping = db.get_stripe_customer(user_id)
        if mapping:
            billing_info['stripe_customer_id'] = mapping['customer_id']
            subscription = db.get_subscription_for_customer(mapping['customer_id'])
            if subscription:
                billing_info['subscription'] = subscription
                billing_info['plan'] = get_product_by_price(subscription.get('price_id') or '')

        return success_response(data=billing_info, message="Billing information retrieved successfully")

    except Exception as e:
        logger.error(f"Get billing info error: {str(e)}")
        return server_error_response("Internal server error")


@require_auth
def cancel_subscription(event: Dict[str, Any], context: Any, user_info=None) -> Dict[str, Any]:
    """Cancel the caller's subscription at the end of the billing period."""
    try:
        mapping = db.get_stripe_customer(user_info['user_id'])
        subscription = db.get_subscription_for_customer(mapping['customer_id']) if mapping else None

        if not subscription or subscription.get('status') not in ('active', 'trialing'):
            return error_response("No active subscription found", 400)

        try:
            stripe.Subscription.modify(subscription['subscription_id'], cancel_at_period_end=True)
        except stripe.StripeError as e:
            return stripe_error_response(e)

        db.upsert_subscription(mapping['customer_id'], {'cancel_at_period_end': True})
        track(user_info['user_id'], 'subscription', 'cancel_requested')

        return success_response(
            message="Subscription will be canceled at the end of the current billing period"
        )

    except Exception as e:
        logger.error(f"Cancel subscription error: {str(e)}")
        return server_error_response("Internal server error")
