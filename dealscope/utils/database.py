"""
DynamoDB database utilities.
"""

import os
import json
import logging
import boto3
from decimal import Decimal
from typing import Dict, Any, Optional, List
from boto3.dynamodb.conditions import Key, Attr
from botocore.exceptions import ClientError
from datetime import datetime

logger = logging.getLogger()
logger.setLevel(logging.INFO)


def to_dynamo(value: Any) -> Any:
    """Convert floats to Decimal so DynamoDB accepts the value."""
    return json.loads(json.dumps(value, default=str), parse_float=Decimal)


def from_dynamo(value: Any) -> Any:
    """Convert DynamoDB Decimals back to int / float."""
    if isinstance(value, list):
        return [from_dynamo(v) for v in value]
    if isinstance(value, dict):
        return {k: from_dynamo(v) for k, v in value.items()}
    if isinstance(value, Decimal):
        return int(value) if value % 1 == 0 else float(value)
    return value


def build_update_expression(updates: Dict[str, Any]) -> Dict[str, Any]:
    """Build SET UpdateExpression kwargs; attribute names are aliased to dodge reserved words."""
    parts = []
    names = {}
    values = {}

    for index, (key, value) in enumerate(updates.items()):
        parts.append(f"#f{index} = :v{index}")
        names[f"#f{index}"] = key
        values[f":v{index}"] = to_dynamo(value)

    return {
        'UpdateExpression': "SET " + ", ".join(parts),
        'ExpressionAttributeNames': names,
        'ExpressionAttributeValues': values
    }


class DatabaseClient:
    """DynamoDB client wrapper."""

    TABLES = (
        'users', 'password_resets', 'credit_wallets', 'credit_transactions',
        'deals', 'deal_sections', 'audit_logs', 'messages', 'documents',
        'notifications', 'shared_reports', 'stripe_customers',
        'stripe_subscriptions', 'stripe_orders', 'client_pipeline',
        'contact_requests', 'contact_notes', 'appointments',
        'analytics_events', 'analytics_sessions', 'analytics_page_views'
    )

    def __init__(self):
        self.dynamodb = boto3.resource('dynamodb', region_name=os.getenv('AWS_REGION', 'us-east-1'))
        self.stage = os.getenv('STAGE', 'dev')
        self.service_name = 'dealscope'

        # Table references - use environment variables if available
        for name in self.TABLES:
            table_name = os.getenv(
                f'DYNAMODB_TABLE_{name.upper()}',
                f'{self.service_name}-{self.stage}-{name.replace("_", "-")}'
            )
            setattr(self, f'{name}_table', self.dynamodb.Table(table_name))

    # Generic helpers
    def _put(self, table, item: Dict[str, Any], condition: Optional[str] = None, **condition_args) -> bool:
        kwargs = {'Item': to_dynamo(item)}
        if condition:
            kwargs['ConditionExpression'] = condition
            kwargs.update(condition_args)
        try:
            table.put_item(**kwargs)
            return True
        except ClientError as e:
            if e.response['Error']['Code'] != 'ConditionalCheckFailedException':
                logger.error(f"put_item on {table.name} failed: {str(e)}")
            return False

    def _get(self, table, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            response = table.get_item(Key=key)
            item = response.get('Item')
            return from_dynamo(item) if item else None
        except ClientError as e:
            logger.error(f"get_item on {table.name} failed: {str(e)}")
            return None

    def _update(self, table, key: Dict[str, Any], updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Apply SET updates and return the new item (None on failure)."""
        if not updates:
            return self._get(table, key)
        try:
            response = table.update_item(
                Key=key,
                ReturnValues='ALL_NEW',
                **build_update_expression(updates)
            )
            return from_dynamo(response.get('Attributes', {}))
        except ClientError as e:
            logger.error(f"update_item on {table.name} failed: {str(e)}")
            return None

    def _delete(self, table, key: Dict[str, Any]) -> bool:
        try:
            table.delete_item(Key=key)
            return True
        except ClientError as e:
            logger.error(f"delete_item on {table.name} failed: {str(e)}")
            return False

    def _query_all(self, table, **kwargs) -> List[Dict[str, Any]]:
        items = []
        try:
            while True:
                response = table.query(**kwargs)
                items.extend(response.get('Items', []))
                if 'LastEvaluatedKey' not in response:
                    break
                kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']
        except ClientError as e:
            logger.error(f"query on {table.name} failed: {str(e)}")
        return from_dynamo(items)

    def _scan_all(self, table, **kwargs) -> List[Dict[str, Any]]:
        items = []
        try:
            while True:
                response = table.scan(**kwargs)
                items.extend(response.get('Items', []))
                if 'LastEvaluatedKey' not in response:
                    break
                kwargs['ExclusiveStartKey'] = response['LastEvaluatedKey']
        except ClientError as e:
            logger.error(f"scan on {table.name} failed: {str(e)}")
        return from_dynamo(items)

    def _delete_matching(self, table, key_names: List[str], condition) -> int:
        """Delete every item matching a filter; returns the number deleted."""
        items = self._scan_all(table, FilterExpression=condition)
        deleted = 0
        with table.batch_writer() as batch:
            for item in items:
                batch.delete_item(Key={name: item[name] for name in key_names})
                deleted += 1
        return deleted

    # User operations
    def create_user(self, user_data: Dict[str, Any]) -> bool:
        """Create a new user."""
        return self._put(self.users_table, user_data, 'attribute_not_exists(user_id)')

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Get user by ID."""
        return self._get(self.users_table, {'user_id': user_id})

    def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Get user by email."""
        items = self._query_all(
            self.users_table,
            IndexName='EmailIndex',
            KeyConditionExpression=Key('email').eq(email.strip().lower())
        )
        return items[0] if items else None

    def update_user(self, user_id: str, updates: Dict[str, Any]) -> bool:
        """Update user data."""
        return self._update(self.users_table, {'user_id': user_id}, updates) is not None

    def delete_user(self, user_id: str) -> bool:
        """Delete a user."""
        return self._delete(self.users_table, {'user_id': user_id})

    def list_users(self) -> List[Dict[str, Any]]:
        """List every user profile."""
        return self._scan_all(self.users_table)

    # Password reset operations
    def create_password_reset(self, reset_data: Dict[str, Any]) -> bool:
        """Create a password reset token."""
        return self._put(self.password_resets_table, reset_data)

    def get_password_reset(self, reset_token: str) -> Optional[Dict[str, Any]]:
        """Get password reset data by token."""
        return self._get(self.password_resets_table, {'reset_token': reset_token})

    def update_password_reset(self, reset_token: str, updates: Dict[str, Any]) -> bool:
        """Update password reset data."""
        return self._update(self.password_resets_table, {'reset_token': reset_token}, updates) is not None

    def delete_password_reset(self, reset_token: str) -> bool:
        """Delete a password reset token."""
        return self._delete(self.password_resets_table, {'reset_token': reset_token})

    # Credit wallet operations
    def get_wallet(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Get the credit wallet of a user."""
        return self._get(self.credit_wallets_table, {'user_id': user_id})

    def create_wallet(self, wallet: Dict[str, Any]) -> bool:
        """Create a wallet unless one exists already."""
        return self._put(self.credit_wallets_table, wallet, 'attribute_not_exists(user_id)')

    def add_credits(self, user_id: str, amount: int) -> Optional[int]:
        """Atomically add credits (creating the wallet if needed); returns the new balance."""
        try:
            response = self.credit_wallets_table.update_item(
                Key={'user_id': user_id},
                UpdateExpression=(
                    'SET updated_at = :now, tier = if_not_exists(tier, :tier), '
                    'rollover_credits = if_not_exists(rollover_credits, :zero) '
                    'ADD credits :amount'
                ),
                ExpressionAttributeValues={
                    ':amount': amount,
                    ':now': datetime.utcnow().isoformat(),
                    ':tier': 'basic',
                    ':zero': 0
                },
                ReturnValues='ALL_NEW'
            )
            return int(response['Attributes']['credits'])
        except ClientError as e:
            logger.error(f"Failed to add credits for {user_id}: {str(e)}")
            return None

    def debit_credits(self, user_id: str, amount: int) -> Optional[int]:
        """Atomically remove credits if the balance covers them; None when it does not."""
        try:
            response = self.credit_wallets_table.update_item(
                Key={'user_id': user_id},
                UpdateExpression='SET updated_at = :now ADD credits :negative',
                ConditionExpression='attribute_exists(user_id) AND credits >= :amount',
                ExpressionAttributeValues={
                    ':amount': amount,
                    ':negative': -amount,
                    ':now': datetime.utcnow().isoformat()
                },
                ReturnValues='ALL_NEW'
            )
            return int(response['Attributes']['credits'])
        except ClientError as e:
            if e.response['Error']['Code'] != 'ConditionalCheckFailedException':
                logger.error(f"Failed to debit credits for {user_id}: {str(e)}")
            return None

    def update_wallet(self, user_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Update wallet attributes other than the balance."""
        return self._update(self.credit_wallets_table, {'user_id': user_id}, updates)

    def add_credit_transaction(self, transaction: Dict[str, Any]) -> bool:
        """Record a credit transaction."""
        return self._put(self.credit_transactions_table, transaction)

    def list_credit_transactions(self, user_id: str) -> List[Dict[str, Any]]:
        """List a user's credit transactions."""
        return self._query_all(
            self.credit_transactions_table,
            KeyConditionExpression=Key('user_id').eq(user_id)
        )

    # Deal operations
    def create_deal(self, deal: Dict[str, Any]) -> bool:
        """Create a deal."""
        return self._put(self.deals_table, deal, 'attribute_not_exists(deal_id)')

    def get_deal(self, deal_id: str) -> Optional[Dict[str, Any]]:
        """Get a deal by ID."""
        return self._get(self.deals_table, {'deal_id': deal_id})

    def update_deal(self, deal_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Update a deal and return it."""
        return self._update(self.deals_table, {'deal_id': deal_id}, updates)

    def advance_deal_progress(self, deal_id: str, milestone: int, updated_at: str) -> Optional[Dict[str, Any]]:
        """Raise progress to the milestone unless it is already past it."""
        try:
            response = self.deals_table.update_item(
                Key={'deal_id': deal_id},
                UpdateExpression='SET progress = :milestone, updated_at = :now',
                ConditionExpression='attribute_not_exists(progress) OR progress < :milestone',
                ExpressionAttributeValues={':milestone': milestone, ':now': updated_at},
                ReturnValues='ALL_NEW'
            )
            return from_dynamo(response.get('Attributes', {}))
        except ClientError as e:
            if e.response['Error']['Code'] != 'ConditionalCheckFailedException':
                logger.error(f"Failed to advance progress of {deal_id}: {str(e)}")
                return None
            return self.get_deal(deal_id)

    def list_deals_for_investor(self, investor_id: str) -> List[Dict[str, Any]]:
        """List an investor's deals (including soft-deleted ones)."""
        return self._query_all(
            self.deals_table,
            IndexName='InvestorIndex',
            KeyConditionExpression=Key('investor_id').eq(investor_id)
        )

    def list_active_deals(self) -> List[Dict[str, Any]]:
        """List every deal that has not been soft deleted."""
        return self._scan_all(
            self.deals_table,
            FilterExpression=Attr('deleted_at').not_exists() | Attr('deleted_at').eq(None)
        )

    def delete_deal(self, deal_id: str) -> bool:
        """Hard delete a deal with its sections, messages and documents."""
        for table, sort_key in (
            (self.deal_sections_table, 'section_type'),
            (self.messages_table, 'message_id'),
            (self.documents_table, 'document_id'),
            (self.audit_logs_table, 'log_id')
        ):
            items = self._query_all(table, KeyConditionExpression=Key('deal_id').eq(deal_id))
            with table.batch_writer() as batch:
                for item in items:
                    batch.delete_item(Key={'deal_id': deal_id, sort_key: item[sort_key]})
        return self._delete(self.deals_table, {'deal_id': deal_id})

    # Deal section operations
    def get_section(self, deal_id: str, section_type: str) -> Optional[Dict[str, Any]]:
        """Get one workflow section of a deal."""
        return self._get(self.deal_sections_table, {'deal_id': deal_id, 'section_type': section_type})

    def put_section(self, section: Dict[str, Any]) -> bool:
        """Create or replace a workflow section."""
        return self._put(self.deal_sections_table, section)

    def list_sections(self, deal_id: str) -> List[Dict[str, Any]]:
        """List all workflow sections of a deal."""
        return self._query_all(
            self.deal_sections_table,
            KeyConditionExpression=Key('deal_id').eq(deal_id)
        )

    # Audit log operations
    def add_audit_log(self, entry: Dict[str, Any]) -> bool:
        """Record an audit log entry."""
        return self._put(self.audit_logs_table, entry)

    # Message operations
    def add_message(self, message: Dict[str, Any]) -> bool:
        """Store a deal message."""
        return self._put(self.messages_table, message)

    def list_messages(self, deal_id: str) -> List[Dict[str, Any]]:
        """List messages of a deal in sort key order."""
        return self._query_all(
            self.messages_table,
            KeyConditionExpression=Key('deal_id').eq(deal_id)
        )

    # Document operations
    def add_document(self, document: Dict[str, Any]) -> bool:
        """Store a document record."""
        return self._put(self.documents_table, document)

    def update_document(self, deal_id: str, document_id: str, updates: Dict[str, Any]) -> bool:
        """Update a document record."""
        key = {'deal_id': deal_id, 'document_id': document_id}
        return self._update(self.documents_table, key, updates) is not None

    def list_documents(self, deal_id: str) -> List[Dict[str, Any]]:
        """List all document versions of a deal."""
        return self._query_all(
            self.documents_table,
            KeyConditionExpression=Key('deal_id').eq(deal_id)
        )

    # Notification operations
    def add_notification(self, notification: Dict[str, Any]) -> bool:
        """Store a notification."""
        return self._put(self.notifications_table, notification)

    def list_notifications(self, user_id: str) -> List[Dict[str, Any]]:
        """List a user's notifications."""
        return self._query_all(
            self.notifications_table,
            KeyConditionExpression=Key('user_id').eq(user_id)
        )

    def update_notification(self, user_id: str, notification_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Update a notification."""
        key = {'user_id': user_id, 'notification_id': notification_id}
        if not self._get(self.notifications_table, key):
            return None
        return self._update(self.notifications_table, key, updates)

    # Shared report operations
    def add_shared_report(self, share: Dict[str, Any]) -> bool:
        """Store a report share."""
        return self._put(self.shared_reports_table, share)

    def get_shared_report(self, share_id: str) -> Optional[Dict[str, Any]]:
        """Get a report share by its token."""
        return self._get(self.shared_reports_table, {'share_id': share_id})

    # Stripe customer operations
    def get_stripe_customer(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Get the Stripe customer mapping of a user."""
        return self._get(self.stripe_customers_table, {'user_id': user_id})

    def create_stripe_customer(self, user_id: str, customer_id: str) -> bool:
        """Store the user to Stripe customer mapping."""
        return self._put(self.stripe_customers_table, {
            'user_id': user_id,
            'customer_id': customer_id,
            'created_at': datetime.utcnow().isoformat()
        })

    def get_user_id_for_customer(self, customer_id: str) -> Optional[str]:
        """Resolve a Stripe customer back to the user."""
        items = self._query_all(
            self.stripe_customers_table,
            IndexName='CustomerIndex',
            KeyConditionExpression=Key('customer_id').eq(customer_id)
        )
        return items[0]['user_id'] if items else None

    # Stripe subscription operations
    def upsert_subscription(self, customer_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Create or update the subscription row of a customer."""
        updates = dict(updates, updated_at=datetime.utcnow().isoformat())
        return self._update(self.stripe_subscriptions_table, {'customer_id': customer_id}, updates)

    def get_subscription_for_customer(self, customer_id: str) -> Optional[Dict[str, Any]]:
        """Get the subscription row of a customer."""
        return self._get(self.stripe_subscriptions_table, {'customer_id': customer_id})

    def list_subscriptions(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        """List subscription rows, optionally by status."""
        if status:
            return self._scan_all(self.stripe_subscriptions_table, FilterExpression=Attr('status').eq(status))
        return self._scan_all(self.stripe_subscriptions_table)

    # Stripe order operations
    def create_order(self, order: Dict[str, Any]) -> bool:
        """Insert a pending order; False when the checkout session was already completed."""
        return self._put(
            self.stripe_orders_table,
            order,
            'attribute_not_exists(checkout_session_id) OR #status <> :completed',
            ExpressionAttributeNames={'#status': 'status'},
            ExpressionAttributeValues={':completed': 'completed'}
        )

    def complete_order(self, checkout_session_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Mark an order completed once its credits are granted."""
        return self._update(
            self.stripe_orders_table,
            {'checkout_session_id': checkout_session_id},
            {**updates, 'status': 'completed'}
        )

    # Pipeline operations
    def add_pipeline_entry(self, entry: Dict[str, Any]) -> bool:
        """Create a pipeline entry."""
        return self._put(self.client_pipeline_table, entry, 'attribute_not_exists(entry_id)')

    def get_pipeline_entry(self, entry_id: str) -> Optional[Dict[str, Any]]:
        """Get a pipeline entry by ID."""
        return self._get(self.client_pipeline_table, {'entry_id': entry_id})

    def get_pipeline_entry_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Get the pipeline entry of an email address."""
        items = self._query_all(
            self.client_pipeline_table,
            IndexName='EmailIndex',
            KeyConditionExpression=Key('email').eq(email.strip().lower())
        )
        return items[0] if items else None

    def update_pipeline_entry(self, entry_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Update a pipeline entry."""
        return self._update(self.client_pipeline_table, {'entry_id': entry_id}, updates)

    def delete_pipeline_entry(self, entry_id: str) -> bool:
        """Delete a pipeline entry."""
        return self._delete(self.client_pipeline_table, {'entry_id': entry_id})

    def list_pipeline_entries(self) -> List[Dict[str, Any]]:
        """List every pipeline entry."""
        return self._scan_all(self.client_pipeline_table)

    # Contact request operations
    def add_contact_request(self, request: Dict[str, Any]) -> bool:
        """Store a contact request."""
        return self._put(self.contact_requests_table, request)

    def get_contact_request(self, request_id: str) -> Optional[Dict[str, Any]]:
        """Get a contact request by ID."""
        return self._get(self.contact_requests_table, {'request_id': request_id})

    def update_contact_request(self, request_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Update a contact request."""
        return self._update(self.contact_requests_table, {'request_id': request_id}, updates)

    def list_contact_requests(self) -> List[Dict[str, Any]]:
        """List every contact request."""
        return self._scan_all(self.contact_requests_table)

    def add_contact_note(self, note: Dict[str, Any]) -> bool:
        """Store a note on a contact request."""
        return self._put(self.contact_notes_table, note)

    def list_contact_notes(self, request_id: str) -> List[Dict[str, Any]]:
        """List the notes of a contact request."""
        return self._query_all(
            self.contact_notes_table,
            KeyConditionExpression=Key('request_id').eq(request_id)
        )

    # Appointment operations
    def add_appointment(self, appointment: Dict[str, Any]) -> bool:
        """Store an appointment."""
        return self._put(self.appointments_table, appointment)

    def get_appointment(self, appointment_id: str) -> Optional[Dict[str, Any]]:
        """Get an appointment by ID."""
        return self._get(self.appointments_table, {'appointment_id': appointment_id})

    def update_appointment(self, appointment_id: str, updates: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Update an appointment."""
        return self._update(self.appointments_table, {'appointment_id': appointment_id}, updates)

    def delete_appointment(self, appointment_id: str) -> bool:
        """Delete an appointment."""
        return self._delete(self.appointments_table, {'appointment_id': appointment_id})

    def list_appointments(self, analyst_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """List appointments, optionally for a single analyst."""
        if analyst_id:
            return self._query_all(
                self.appointments_table,
                IndexName='AnalystIndex',
                KeyConditionExpression=Key('analyst_id').eq(analyst_id)
            )
        return self._scan_all(self.appointments_table)

    # Analytics operations
    def track_event(self, event_data: Dict[str, Any]) -> bool:
        """Track an analytics event."""
        return self._put(self.analytics_events_table, event_data)

    def get_events_since(self, start_time: Optional[str] = None) -> List[Dict[str, Any]]:
        """Get analytics events of every type since a timestamp (all events without one)."""
        if not start_time:
            return self._scan_all(self.analytics_events_table)
        return self._scan_all(
            self.analytics_events_table,
            FilterExpression=Attr('timestamp').gte(start_time)
        )

    def create_session(self, session: Dict[str, Any]) -> bool:
        """Store an analytics session."""
        return self._put(self.analytics_sessions_table, session)

    def update_session(self, session_id: str, updates: Dict[str, Any]) -> bool:
        """Update an analytics session."""
        return self._update(self.analytics_sessions_table, {'session_id': session_id}, updates) is not None

    def add_page_view(self, page_view: Dict[str, Any]) -> bool:
        """Store a page view."""
        return self._put(self.analytics_page_views_table, page_view)

    # Account deletion
    def purge_user_data(self, user_id: str, email: Optional[str] = None) -> Dict[str, int]:
        """
        Delete every row that references a user, children before parents.

        Contact requests assigned to the user are kept but unassigned.
        Returns the number of deleted rows per table.
        """
        counts = {}
        counts['notifications'] = self._delete_matching(
            self.notifications_table, ['user_id', 'notification_id'], Attr('user_id').eq(user_id))
        counts['audit_logs'] = self._delete_matching(
            self.audit_logs_table, ['deal_id', 'log_id'], Attr('user_id').eq(user_id))
        counts['shared_reports'] = self._delete_matching(
            self.shared_reports_table, ['share_id'], Attr('shared_by').eq(user_id))
        counts['contact_notes'] = self._delete_matching(
            self.contact_notes_table, ['request_id', 'note_id'], Attr('user_id').eq(user_id))
        counts['appointments'] = self._delete_matching(
            self.appointments_table, ['appointment_id'], Attr('analyst_id').eq(user_id))
        if email:
            counts['client_pipeline'] = self._delete_matching(
                self.client_pipeline_table, ['entry_id'], Attr('email').eq(email))
        counts['analytics_sessions'] = self._delete_matching(
            self.analytics_sessions_table, ['session_id'], Attr('user_id').eq(user_id))
        counts['analytics_page_views'] = self._delete_matching(
            self.analytics_page_views_table, ['session_id', 'timestamp'], Attr('user_id').eq(user_id))
        counts['analytics_events'] = self._delete_matching(
            self.analytics_events_table, ['event_type', 'timestamp'], Attr('user_id').eq(user_id))
        counts['credit_wallets'] = int(self._delete(self.credit_wallets_table, {'user_id': user_id}))
        counts['credit_transactions'] = self._delete_matching(
            self.credit_transactions_table, ['user_id', 'transaction_id'], Attr('user_id').eq(user_id))
        counts['stripe_customers'] = int(self._delete(self.stripe_customers_table, {'user_id': user_id}))
        counts['stripe_subscriptions'] = self._delete_matching(
            self.stripe_subscriptions_table, ['customer_id'], Attr('user_id').eq(user_id))

        deals = self.list_deals_for_investor(user_id)
        for deal in deals:
            self.delete_deal(deal['deal_id'])
        counts['deals'] = len(deals)

        counts['messages'] = self._delete_matching(
            self.messages_table, ['deal_id', 'message_id'], Attr('user_id').eq(user_id))

        unassigned = 0
        for request in self._scan_all(self.contact_requests_table, FilterExpression=Attr('assigned_to').eq(user_id)):
            self.update_contact_request(request['request_id'], {'assigned_to': None})
            unassigned += 1
        counts['contact_requests_unassigned'] = unassigned

        return counts


# Global database client instance
db = DatabaseClient()
