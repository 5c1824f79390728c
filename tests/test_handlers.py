"""
Tests for the auth, credit, deal, workflow, report and pipeline handlers.
"""

import unittest
from datetime import datetime, timedelta
from unittest.mock import patch, ANY

from dealscope.handlers import auth, credits, deals, sections, reports, pipeline, router
from dealscope.utils.auth import password_manager, jwt_manager
from dealscope.utils.errors import InsufficientCreditsError
from dealscope.models.score import SCORE_CATEGORIES
from dealscope.models.sections import ANALYSIS_STAGE_TYPES

from helpers import INVESTOR, ANALYST, make_event, parse, patch_db


def open_deal(**overrides):
    deal = {
        'deal_id': 'deal-1',
        'investor_id': INVESTOR['user_id'],
        'address': '12 Elm St',
        'status': 'pending',
        'progress': 0,
        'analysis_depth': 'basic',
        'created_at': '2024-03-01T10:00:00'
    }
    deal.update(overrides)
    return deal


class TestSignup(unittest.TestCase):

    def setUp(self):
        self.db = patch_db(self, 'auth', 'analytics', 'pipeline')
        self.db.get_user_by_email.return_value = None
        self.db.get_pipeline_entry_by_email.return_value = None
        self.db.create_user.return_value = True

        patcher = patch('dealscope.handlers.auth.send_welcome_email', return_value=True)
        self.send_welcome = patcher.start()
        self.addCleanup(patcher.stop)

    def test_signup_grants_complimentary_credits(self):
        response = auth.signup(make_event({
            'email': 'New@Example.com', 'password': 'password123', 'name': 'Nia'
        }), None)

        self.assertEqual(response['statusCode'], 201)
        data = parse(response)['data']
        self.assertEqual(data['credits'], 3)
        self.assertEqual(data['user']['email'], 'new@example.com')
        self.assertNotIn('password_hash', data['user'])
        self.assertIn('access_token', data)

        wallet = self.db.create_wallet.call_args[0][0]
        self.assertEqual(wallet['credits'], 3)
        self.assertEqual(wallet['tier'], 'basic')
        self.db.add_pipeline_entry.assert_called_once()
        self.send_welcome.assert_called_once_with('new@example.com', 'Nia', 3)

    def test_duplicate_email_rejected(self):
        self.db.get_user_by_email.return_value = {'user_id': 'u1'}
        response = auth.signup(make_event({'email': 'a@example.com', 'password': 'password123'}), None)

        self.assertEqual(response['statusCode'], 409)
        self.db.create_user.assert_not_called()

    def test_public_analyst_signup_refused(self):
        response = auth.signup(make_event({
            'email': 'mallory@example.com', 'password': 'password123', 'role': 'analyst'
        }), None)

        self.assertEqual(response['statusCode'], 403)
        self.db.create_user.assert_not_called()

    def test_analyst_opens_analyst_account(self):
        response = auth.signup(make_event({
            'email': 'second@example.com', 'password': 'password123', 'role': 'analyst'
        }, user=ANALYST), None)

        self.assertEqual(response['statusCode'], 201)
        self.assertEqual(self.db.create_user.call_args[0][0]['role'], 'analyst')

    def test_allowlisted_analyst_signup(self):
        with patch.dict('os.environ', {'ANALYST_SIGNUP_EMAILS': 'lead@example.com, Ops@Example.com'}):
            response = auth.signup(make_event({
                'email': 'ops@example.com', 'password': 'password123', 'role': 'analyst'
            }), None)
        self.assertEqual(response['statusCode'], 201)

    def test_short_password_rejected(self):
        response = auth.signup(make_event({'email': 'a@example.com', 'password': 'short'}), None)
        self.assertEqual(response['statusCode'], 422)

    def test_invalid_json(self):
        event = make_event()
        event['body'] = '{not json'
        self.assertEqual(auth.signup(event, None)['statusCode'], 400)

    def test_array_body_rejected(self):
        event = make_event([1])
        response = auth.signup(event, None)
        self.assertEqual(response['statusCode'], 400)
        self.assertEqual(parse(response)['message'], "Invalid JSON in request body")


class TestLogin(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.password_hash = password_manager.hash_password('password123')

    def setUp(self):
        self.db = patch_db(self, 'auth', 'analytics')
        self.user = {
            'user_id': 'analyst-1',
            'email': 'analyst@example.com',
            'role': 'analyst',
            'status': 'active',
            'password_hash': self.password_hash
        }
        self.db.get_user_by_email.return_value = self.user

    def login(self, password='password123', role='analyst'):
        return auth.login(make_event({'email': 'analyst@example.com', 'password': password, 'role': role}), None)

    def test_login_with_matching_role(self):
        response = self.login()
        self.assertEqual(response['statusCode'], 200)
        self.assertEqual(parse(response)['data']['role'], 'analyst')
        self.db.update_user.assert_called_once_with('analyst-1', {'last_login': ANY, 'updated_at': ANY})

    def test_role_mismatch_names_actual_role(self):
        response = self.login(role='investor')
        self.assertEqual(response['statusCode'], 403)
        self.assertEqual(parse(response)['message'], "Please select analyst when logging in.")

    def test_wrong_password(self):
        response = self.login(password='wrong-password')
        self.assertEqual(response['statusCode'], 401)
        self.assertEqual(parse(response)['message'], "Invalid email or password")

    def test_suspended_account(self):
        self.user['status'] = 'suspended'
        self.assertEqual(self.login()['statusCode'], 403)


class TestTokens(unittest.TestCase):

    def setUp(self):
        self.db = patch_db(self, 'auth', 'analytics')
        self.db.get_user.return_value = {
            'user_id': 'investor-1', 'email': 'investor@example.com', 'role': 'investor', 'status': 'active'
        }

    def test_refresh_issues_access_token(self):
        token = jwt_manager.create_refresh_token('investor-1')
        response = auth.refresh_token(make_event({'refresh_token': token}), None)

        self.assertEqual(response['statusCode'], 200)
        access_token = parse(response)['data']['access_token']
        self.assertEqual(jwt_manager.extract_user_from_token(access_token)['user_id'], 'investor-1')

    def test_refresh_rejects_access_token(self):
        token = jwt_manager.create_access_token('investor-1', 'investor', 'investor@example.com')
        response = auth.refresh_token(make_event({'refresh_token': token}), None)

        self.assertEqual(response['statusCode'], 401)
        self.db.get_user.assert_not_called()

    def test_authorizer_allows_valid_token(self):
        token = jwt_manager.create_access_token('analyst-1', 'analyst', 'analyst@example.com')
        policy = auth.authorizer({
            'authorizationToken': f'Bearer {token}',
            'methodArn': 'arn:aws:execute-api:us-east-1:123:api/dev/GET/deals'
        }, None)

        self.assertEqual(policy['principalId'], 'analyst-1')
        self.assertEqual(policy['policyDocument']['Statement'][0]['Effect'], 'Allow')
        self.assertEqual(policy['context'], {
            'user_id': 'analyst-1', 'role': 'analyst', 'email': 'analyst@example.com'
        })

    def test_authorizer_denies_refresh_token(self):
        token = jwt_manager.create_refresh_token('analyst-1')
        policy = auth.authorizer({
            'authorizationToken': f'Bearer {token}',
            'methodArn': 'arn:aws:execute-api:us-east-1:123:api/dev/GET/deals'
        }, None)

        self.assertEqual(policy['principalId'], 'anonymous')
        self.assertEqual(policy['policyDocument']['Statement'][0]['Effect'], 'Deny')
        self.assertNotIn('context', policy)


class TestPasswordReset(unittest.TestCase):

    def setUp(self):
        self.db = patch_db(self, 'auth', 'analytics')
        self.db.get_user.return_value = {'user_id': 'investor-1', 'email': 'investor@example.com'}
        self.db.update_user.return_value = True

    def reset(self, **token_fields):
        reset_data = {
            'reset_token': 'tok-1',
            'user_id': 'investor-1',
            'expires_at': (datetime.utcnow() + timedelta(minutes=30)).isoformat(),
            'used': False
        }
        reset_data.update(token_fields)
        self.db.get_password_reset.return_value = reset_data
        return auth.reset_password(make_event({'token': 'tok-1', 'new_password': 'new-password-1'}), None)

    def test_reset_token_lasts_one_hour(self):
        self.db.get_user_by_email.return_value = {
            'user_id': 'investor-1', 'email': 'investor@example.com', 'status': 'active'
        }
        self.db.create_password_reset.return_value = True

        with patch('dealscope.handlers.auth.send_password_reset_email', return_value=True):
            response = auth.request_password_reset(make_event({'email': 'investor@example.com'}), None)

        self.assertEqual(response['statusCode'], 200)
        reset_data = self.db.create_password_reset.call_args[0][0]
        issued = datetime.fromisoformat(reset_data['created_at'])
        self.assertEqual(datetime.fromisoformat(reset_data['expires_at']) - issued, timedelta(hours=1))
        self.assertFalse(reset_data['used'])

    def test_unknown_email_gets_same_answer(self):
        self.db.get_user_by_email.return_value = None
        response = auth.request_password_reset(make_event({'email': 'nobody@example.com'}), None)

        self.assertEqual(response['statusCode'], 200)
        self.db.create_password_reset.assert_not_called()

    def test_reset_marks_token_used(self):
        response = self.reset()

        self.assertEqual(response['statusCode'], 200)
        self.assertIn('password_hash', self.db.update_user.call_args[0][1])
        self.db.update_password_reset.assert_called_once_with('tok-1', {'used': True, 'used_at': ANY})

    def test_used_token_rejected(self):
        response = self.reset(used=True)

        self.assertEqual(response['statusCode'], 400)
        self.assertEqual(parse(response)['message'], "Reset token has already been used")
        self.db.update_user.assert_not_called()

    def test_expired_token_rejected(self):
        response = self.reset(expires_at=(datetime.utcnow() - timedelta(minutes=1)).isoformat())

        self.assertEqual(response['statusCode'], 400)
        self.assertEqual(parse(response)['message'], "Reset token has expired")
        self.db.delete_password_reset.assert_called_once_with('tok-1')
        self.db.update_user.assert_not_called()


class TestCredits(unittest.TestCase):

    def setUp(self):
        self.db = patch_db(self, 'credits', 'analytics')

    def test_debit_refused_when_balance_too_low(self):
        self.db.debit_credits.return_value = None
        with self.assertRaises(InsufficientCreditsError):
            credits.debit_credits('investor-1', 3, 'Premium Analysis')
        self.db.add_credit_transaction.assert_not_called()

    def test_debit_records_negative_transaction(self):
        self.db.debit_credits.return_value = 2
        self.assertEqual(credits.debit_credits('investor-1', 1, 'Basic Analysis'), 2)
        transaction = self.db.add_credit_transaction.call_args[0][0]
        self.assertEqual(transaction['amount'], -1)
        self.assertEqual(transaction['type'], 'debit')

    def test_ensure_wallet_creates_missing_wallet(self):
        self.db.get_wallet.return_value = None
        self.db.create_wallet.return_value = True
        wallet = credits.ensure_wallet('investor-1')
        self.assertEqual(wallet['credits'], 0)

    def test_adjust_requires_analyst(self):
        response = credits.adjust_credits(make_event({'user_id': 'u1', 'amount': 5}, user=INVESTOR), None)
        self.assertEqual(response['statusCode'], 403)

    def test_negative_adjustment_cannot_overdraw(self):
        self.db.get_user.return_value = {'user_id': 'u1'}
        self.db.get_wallet.return_value = {'user_id': 'u1', 'credits': 1}
        self.db.debit_credits.return_value = None
        response = credits.adjust_credits(make_event({'user_id': 'u1', 'amount': -5}, user=ANALYST), None)
        self.assertEqual(response['statusCode'], 402)

    def test_missing_authentication(self):
        self.assertEqual(credits.get_wallet(make_event(), None)['statusCode'], 401)


class TestDeals(unittest.TestCase):

    def setUp(self):
        self.db = patch_db(self, 'deals', 'credits', 'analytics')

    def test_insufficient_credits_for_premium(self):
        self.db.debit_credits.return_value = None
        response = deals.create_deal(make_event({'address': '12 Elm St', 'analysis_depth': 'premium'}, user=INVESTOR), None)

        self.assertEqual(response['statusCode'], 402)
        self.assertEqual(parse(response)['message'], "You need 3 credits for a Premium Analysis")
        self.db.create_deal.assert_not_called()

    def test_create_deal_debits_cost(self):
        self.db.debit_credits.return_value = 1
        self.db.create_deal.return_value = True
        response = deals.create_deal(make_event({'address': '12 Elm St', 'analysis_depth': 'standard'}, user=INVESTOR), None)

        self.assertEqual(response['statusCode'], 201)
        data = parse(response)['data']
        self.assertEqual(data['credits_remaining'], 1)
        self.assertEqual(data['deal']['status'], 'pending')
        self.db.debit_credits.assert_called_once_with('investor-1', 2)

    def test_failed_creation_refunds_credits(self):
        self.db.debit_credits.return_value = 0
        self.db.create_deal.return_value = False
        self.db.add_credits.return_value = 1
        response = deals.create_deal(make_event({'address': '12 Elm St'}, user=INVESTOR), None)

        self.assertEqual(response['statusCode'], 500)
        self.db.add_credits.assert_called_once_with('investor-1', 1)
        refund = self.db.add_credit_transaction.call_args[0][0]
        self.assertEqual(refund['type'], 'refund')

    def test_analysts_cannot_submit_deals(self):
        response = deals.create_deal(make_event({'address': '12 Elm St'}, user=ANALYST), None)
        self.assertEqual(response['statusCode'], 403)

    def test_other_investors_cannot_read_deal(self):
        self.db.get_deal.return_value = open_deal(investor_id='investor-2')
        response = deals.get_deal(make_event(user=INVESTOR, path_params={'dealId': 'deal-1'}), None)
        self.assertEqual(response['statusCode'], 403)

    def test_deleted_deal_not_found(self):
        self.db.get_deal.return_value = open_deal(deleted_at='2024-03-02T10:00:00')
        response = deals.get_deal(make_event(user=INVESTOR, path_params={'dealId': 'deal-1'}), None)
        self.assertEqual(response['statusCode'], 404)

    def test_deal_status_lists_stages(self):
        self.db.get_deal.return_value = open_deal(progress=30, status='in_progress')
        response = deals.get_deal_status(make_event(user=INVESTOR, path_params={'dealId': 'deal-1'}), None)

        stages = parse(response)['data']['stages']
        self.assertEqual([s['completed'] for s in stages[:3]], [True, True, False])

    def test_analyst_message_notifies_investor(self):
        self.db.get_deal.return_value = open_deal()
        self.db.add_message.return_value = True
        response = deals.post_message(make_event({'content': 'Inspection booked'}, user=ANALYST,
                                                 path_params={'dealId': 'deal-1'}), None)

        self.assertEqual(response['statusCode'], 201)
        notification = self.db.add_notification.call_args[0][0]
        self.assertEqual(notification['user_id'], 'investor-1')

    def upload(self, name):
        with patch('dealscope.handlers.deals.s3_client') as s3_client:
            s3_client.generate_presigned_url.return_value = 'https://s3.example.com/put'
            return deals.request_document_upload(make_event(
                {'name': name, 'content_type': 'application/pdf'},
                user=INVESTOR, path_params={'dealId': 'deal-1'}
            ), None)

    def test_first_upload_is_version_one(self):
        self.db.get_deal.return_value = open_deal()
        self.db.list_documents.return_value = []
        self.db.add_document.return_value = True

        response = self.upload('inspection.pdf')

        self.assertEqual(response['statusCode'], 201)
        data = parse(response)['data']
        self.assertEqual(data['document']['version'], 1)
        self.assertEqual(data['upload_url'], 'https://s3.example.com/put')
        self.db.update_document.assert_not_called()

    def test_reupload_bumps_version_and_replaces_previous(self):
        self.db.get_deal.return_value = open_deal()
        self.db.list_documents.return_value = [
            {'document_id': 'doc-1', 'name': 'inspection.pdf', 'version': 1, 'replaced_by': 'doc-2'},
            {'document_id': 'doc-2', 'name': 'inspection.pdf', 'version': 2, 'replaced_by': None},
            {'document_id': 'doc-3', 'name': 'title.pdf', 'version': 1, 'replaced_by': None},
        ]
        self.db.add_document.return_value = True

        response = self.upload('inspection.pdf')

        document = parse(response)['data']['document']
        self.assertEqual(document['version'], 3)
        self.db.update_document.assert_called_once_with(
            'deal-1', 'doc-2', {'replaced_by': document['document_id']}
        )

    def test_queue_puts_priority_first(self):
        self.db.list_active_deals.return_value = [
            open_deal(deal_id='old', created_at='2024-01-01T00:00:00'),
            open_deal(deal_id='priority', is_priority=True, created_at='2024-02-01T00:00:00'),
        ]
        response = deals.list_analyst_queue(make_event(user=ANALYST), None)
        self.assertEqual([d['deal_id'] for d in parse(response)['data']['deals']], ['priority', 'old'])


class TestSectionWorkflow(unittest.TestCase):

    def setUp(self):
        self.db = patch_db(self, 'sections', 'analytics')
        self.db.list_sections.return_value = []
        self.db.put_section.return_value = True

    def save(self, section_type, data):
        return sections.save_section(make_event(
            {'data': data}, user=ANALYST, path_params={'dealId': 'deal-1', 'sectionType': section_type}
        ), None)

    def test_first_save_starts_analysis(self):
        self.db.get_deal.return_value = open_deal()
        self.db.advance_deal_progress.return_value = open_deal(progress=15)
        self.db.update_deal.return_value = open_deal(progress=15, status='in_progress')

        response = self.save('sourcing', {'listing_price': '$200,000'})

        self.assertEqual(response['statusCode'], 200)
        data = parse(response)['data']
        self.assertEqual(data['progress'], 15)
        self.assertEqual(data['status'], 'in_progress')
        self.assertEqual(data['next_stage']['type'], 'financial')
        self.db.advance_deal_progress.assert_called_once_with('deal-1', 15, ANY)
        self.db.add_audit_log.assert_called_once()

    def test_resaving_earlier_stage_keeps_progress(self):
        deal = open_deal(progress=60, status='in_progress')
        self.db.get_deal.return_value = deal
        self.db.advance_deal_progress.return_value = None

        response = self.save('sourcing', {'listing_price': '210000'})

        self.assertEqual(parse(response)['data']['progress'], 60)
        self.db.update_deal.assert_not_called()

    def test_review_saved_only_by_publishing(self):
        response = self.save('review', {})
        self.assertEqual(response['statusCode'], 400)

    def test_unknown_section(self):
        self.assertEqual(self.save('appraisal', {})['statusCode'], 400)

    def test_invalid_stage_data(self):
        self.db.get_deal.return_value = open_deal()
        response = self.save('financing', {'investor_split': 150})
        self.assertEqual(response['statusCode'], 422)
        self.db.put_section.assert_not_called()

    def test_investors_cannot_save_sections(self):
        response = sections.save_section(make_event(
            {'data': {}}, user=INVESTOR, path_params={'dealId': 'deal-1', 'sectionType': 'sourcing'}
        ), None)
        self.assertEqual(response['statusCode'], 403)

    def publish(self):
        return sections.publish_deal(make_event({
            'score': dict(SCORE_CATEGORIES),
            'executive_summary': 'Strong cash flow in a stable rental market.'
        }, user=ANALYST, path_params={'dealId': 'deal-1'}), None)

    def test_publish_requires_every_stage(self):
        self.db.get_deal.return_value = open_deal(progress=45, status='in_progress')
        self.db.list_sections.return_value = [
            {'section_type': 'sourcing', 'completed': True},
            {'section_type': 'financial', 'completed': True},
        ]
        response = self.publish()

        self.assertEqual(response['statusCode'], 409)
        self.assertIn('rehab, legal, financing, marketplace', parse(response)['message'])
        self.db.update_deal.assert_not_called()

    def test_publish_completes_deal_and_notifies(self):
        self.db.get_deal.return_value = open_deal(progress=90, status='in_progress')
        self.db.list_sections.return_value = [
            {'section_type': t, 'completed': True} for t in ANALYSIS_STAGE_TYPES
        ]
        self.db.update_deal.return_value = open_deal(progress=100, status='completed', analyst_score=100)
        self.db.get_user.return_value = {'email': 'investor@example.com', 'name': 'Ivy'}

        with patch('dealscope.handlers.sections.send_deal_completed_email', return_value=True) as send:
            response = self.publish()

        self.assertEqual(response['statusCode'], 200)
        self.assertEqual(parse(response)['message'], "Your deal analysis for 12 Elm St is complete.")
        updates = self.db.update_deal.call_args[0][1]
        self.assertEqual(updates['status'], 'completed')
        self.assertEqual(updates['progress'], 100)
        self.assertEqual(updates['analyst_score'], 100)
        self.assertEqual(self.db.add_notification.call_args[0][0]['user_id'], 'investor-1')
        send.assert_called_once_with('investor@example.com', '12 Elm St', 'deal-1', 'Ivy')

    def test_publish_rejects_out_of_range_score(self):
        self.db.get_deal.return_value = open_deal()
        response = sections.publish_deal(make_event({
            'score': {'cash_flow': 20}, 'executive_summary': 'Too generous'
        }, user=ANALYST, path_params={'dealId': 'deal-1'}), None)
        self.assertEqual(response['statusCode'], 422)


class TestReports(unittest.TestCase):

    def setUp(self):
        self.db = patch_db(self, 'reports', 'analytics')
        self.db.list_sections.return_value = [{'section_type': 'sourcing', 'data': {'listing_price': '200000'}}]

    def test_missing_authorization(self):
        response = reports.generate_report(make_event({'dealId': 'deal-1'}), None)
        self.assertEqual(response['statusCode'], 401)
        self.assertEqual(parse(response)['message'], "Missing authorization header")

    def test_missing_deal_id(self):
        response = reports.generate_report(make_event({}, user=INVESTOR), None)
        self.assertEqual(parse(response)['message'], "Deal ID is required")

    def test_other_investors_deal_hidden(self):
        self.db.get_deal.return_value = open_deal(investor_id='investor-2')
        response = reports.generate_report(make_event({'dealId': 'deal-1'}, user=INVESTOR), None)
        self.assertEqual(response['statusCode'], 404)
        self.assertEqual(parse(response)['message'], "Deal not found or access denied")

    def test_pdf_attachment(self):
        self.db.get_deal.return_value = open_deal(progress=15)
        response = reports.generate_report(make_event({'dealId': 'deal-1'}, user=INVESTOR), None)

        self.assertEqual(response['statusCode'], 200)
        self.assertTrue(response['isBase64Encoded'])
        self.assertEqual(response['headers']['Content-Type'], 'application/pdf')
        self.assertIn('deal-report.pdf', response['headers']['Content-Disposition'])

    def test_expired_share(self):
        self.db.get_shared_report.return_value = {
            'share_id': 's1', 'deal_id': 'deal-1', 'expires_at': '2020-01-01T00:00:00'
        }
        response = reports.get_shared_report(make_event(path_params={'shareId': 's1'}, method='GET'), None)
        self.assertEqual(response['statusCode'], 410)

    def test_share_sends_email(self):
        self.db.get_deal.return_value = open_deal()
        self.db.add_shared_report.return_value = True
        with patch('dealscope.handlers.reports.send_report_shared_email', return_value=True) as send:
            response = reports.share_report(make_event(
                {'email': 'Partner@Example.com'}, user=INVESTOR, path_params={'dealId': 'deal-1'}
            ), None)

        self.assertEqual(response['statusCode'], 201)
        share = parse(response)['data']
        self.assertEqual(share['shared_with'], 'partner@example.com')
        send.assert_called_once_with('partner@example.com', '12 Elm St', share['share_id'],
                                     'investor@example.com', share['expires_at'])


class TestPipelineHandlers(unittest.TestCase):

    def setUp(self):
        self.db = patch_db(self, 'pipeline')

    def test_record_stage_creates_entry(self):
        self.db.get_pipeline_entry_by_email.return_value = None
        entry = pipeline.record_stage('New@Example.com', 'signup', source='signup')
        self.assertEqual(entry['status'], 'signup')
        self.assertEqual(entry['email'], 'new@example.com')

    def test_record_stage_never_moves_back(self):
        existing = {'entry_id': 'e1', 'status': 'paying_customer'}
        self.db.get_pipeline_entry_by_email.return_value = existing
        self.assertIs(pipeline.record_stage('a@example.com', 'checkout_started'), existing)
        self.db.update_pipeline_entry.assert_not_called()

    def test_record_stage_swallows_storage_errors(self):
        self.db.get_pipeline_entry_by_email.side_effect = RuntimeError('table missing')
        self.assertIsNone(pipeline.record_stage('a@example.com', 'signup'))

    def test_move_to_same_column_is_noop(self):
        self.db.get_pipeline_entry.return_value = {'entry_id': 'e1', 'status': 'trial'}
        response = pipeline.move_entry(make_event({'status': 'trial'}, user=ANALYST,
                                                  path_params={'entryId': 'e1'}), None)
        self.assertEqual(response['statusCode'], 200)
        self.db.update_pipeline_entry.assert_not_called()

    def test_manual_move_records_origin(self):
        self.db.get_pipeline_entry.return_value = {'entry_id': 'e1', 'status': 'paying_customer'}
        self.db.update_pipeline_entry.return_value = {'entry_id': 'e1', 'status': 'lead'}
        pipeline.move_entry(make_event({'status': 'lead'}, user=ANALYST, path_params={'entryId': 'e1'}), None)

        updates = self.db.update_pipeline_entry.call_args[0][1]
        self.assertEqual(updates['converted_from'], 'paying_customer')
        self.assertEqual(updates['status'], 'lead')

    def test_board_rejects_unknown_date_filter(self):
        response = pipeline.get_board(make_event(user=ANALYST, query={'date': 'year'}, method='GET'), None)
        self.assertEqual(response['statusCode'], 400)


class TestRouter(unittest.TestCase):

    def test_preflight(self):
        response = router.dispatch({'httpMethod': 'OPTIONS', 'path': '/deals'}, None)
        self.assertEqual(response['statusCode'], 204)

    def test_literal_route_wins_over_template(self):
        handler, params, _ = router.match_route('GET', '/deals/queue')
        self.assertIs(handler, deals.list_analyst_queue)
        self.assertEqual(params, {})

    def test_path_parameters_extracted(self):
        handler, params, _ = router.match_route('PUT', '/deals/d1/sections/legal/')
        self.assertIs(handler, sections.save_section)
        self.assertEqual(params, {'dealId': 'd1', 'sectionType': 'legal'})

    def test_unknown_route(self):
        response = router.dispatch({'httpMethod': 'GET', 'path': '/nowhere'}, None)
        self.assertEqual(response['statusCode'], 404)

    def test_wrong_method(self):
        response = router.dispatch({'httpMethod': 'PATCH', 'path': '/deals'}, None)
        self.assertEqual(response['statusCode'], 405)

    def test_wrong_method_on_literal_route(self):
        db = patch_db(self, 'deals')
        response = router.dispatch(make_event(user=INVESTOR, method='DELETE', path='/deals/queue'), None)

        self.assertEqual(response['statusCode'], 405)
        self.assertEqual(parse(response)['error_code'], 'METHOD_NOT_ALLOWED')
        db.get_deal.assert_not_called()

    def test_alb_event_dispatched_with_path_params(self):
        db = patch_db(self, 'deals')
        db.get_deal.return_value = open_deal(progress=15)
        event = make_event(user=INVESTOR, method='GET', path='/deals/deal-1/status')

        response = router.dispatch(event, None)

        self.assertEqual(response['statusCode'], 200)
        db.get_deal.assert_called_once_with('deal-1')


if __name__ == '__main__':
    unittest.main()
