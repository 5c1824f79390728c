"""
Tests for deal workflow, scoring, pipeline and credit models.
"""

import unittest
from datetime import datetime

from pydantic import ValidationError

from dealscope.models.sections import (
    STAGES, parse_amount, stage_completion, workflow_order, next_stage, prepare_section_data
)
from dealscope.models.score import DealScore, SCORE_CATEGORIES, MAX_SCORE
from dealscope.models.pipeline import (
    is_forward_move, one_month_before, filter_entries, group_by_column, LeadCreate
)
from dealscope.models.deal import DealCreate, new_deal, can_read, current_documents, credit_cost
from dealscope.models.credits import CreditAdjustment, new_transaction


class TestSections(unittest.TestCase):
    """Stage helpers and derived metrics."""

    def test_milestones_increase_to_100(self):
        milestones = [stage['milestone'] for stage in STAGES]
        self.assertEqual(milestones, sorted(milestones))
        self.assertEqual(milestones[-1], 100)

    def test_parse_amount(self):
        self.assertEqual(parse_amount("$1,200"), 1200.0)
        self.assertEqual(parse_amount(350.5), 350.5)
        self.assertEqual(parse_amount("n/a"), 0.0)
        self.assertEqual(parse_amount(None), 0.0)

    def test_stage_completion_follows_progress(self):
        completion = {stage['type']: stage['completed'] for stage in stage_completion(45)}
        self.assertTrue(completion['sourcing'])
        self.assertTrue(completion['rehab'])
        self.assertFalse(completion['legal'])
        self.assertFalse(completion['review'])

    def test_workflow_order(self):
        sections = [{'section_type': 'legal'}, {'section_type': 'other'}, {'section_type': 'sourcing'}]
        ordered = [s['section_type'] for s in workflow_order(sections)]
        self.assertEqual(ordered, ['sourcing', 'legal', 'other'])

    def test_next_stage(self):
        self.assertEqual(next_stage('sourcing')['type'], 'financial')
        self.assertIsNone(next_stage('review'))

    def test_financial_metrics_use_sourcing_price(self):
        sections = {'sourcing': {'listing_price': '$200,000'}}
        data = prepare_section_data('financial', {'current_rent': '2000', 'noi': '16000'}, sections)
        self.assertEqual(data['cap_rate'], 8.0)
        self.assertEqual(data['grm'], 8.33)

    def test_financial_without_sourcing_has_no_metrics(self):
        data = prepare_section_data('financial', {'noi': '16000'}, {})
        self.assertNotIn('cap_rate', data)

    def test_financial_with_blank_listing_price_has_no_metrics(self):
        sections = {'sourcing': {'listing_price': '', 'current_rents': '1800'}}
        data = prepare_section_data('financial', {'current_rent': '2000', 'noi': '16000'}, sections)
        self.assertNotIn('cap_rate', data)
        self.assertNotIn('grm', data)

    def test_rehab_totals(self):
        data = prepare_section_data('rehab', {
            'estimates': [
                {'category': 'Roof', 'cost': 8000, 'timeframe': 5},
                {'category': 'Kitchen', 'cost': 12000, 'timeframe': 10}
            ]
        }, {})
        self.assertEqual(data['total_cost'], 20000)
        self.assertEqual(data['average_timeframe'], 8)

    def test_rehab_rejects_negative_cost(self):
        with self.assertRaises(ValidationError):
            prepare_section_data('rehab', {'estimates': [{'category': 'Roof', 'cost': -1}]}, {})

    def test_financing_metrics(self):
        sections = {'sourcing': {'listing_price': 200000}, 'financial': {'noi': 16000}}
        data = prepare_section_data('financing', {
            'loan_amount': 150000, 'interest_rate': 6, 'required_equity': 50000, 'investor_split': 70
        }, sections)
        self.assertEqual(data['annual_interest'], 9000.0)
        self.assertEqual(data['loan_to_value'], 75.0)
        self.assertEqual(data['cash_on_cash'], 14.0)

    def test_investor_split_bounded(self):
        with self.assertRaises(ValidationError):
            prepare_section_data('financing', {'investor_split': 120}, {})

    def test_marketplace_averages(self):
        data = prepare_section_data('marketplace', {
            'comparables': [
                {'address': '1 Main St', 'price': 200000, 'sqft': 1000},
                {'address': '2 Main St', 'price': 300000, 'sqft': 1500}
            ]
        }, {})
        self.assertEqual(data['average_price'], 250000.0)
        self.assertEqual(data['average_price_per_sqft'], 200.0)
        self.assertEqual(data['comparables'][0]['price_per_sqft'], 200.0)

    def test_legal_status_values_checked(self):
        with self.assertRaises(ValidationError):
            prepare_section_data('legal', {'title_search_status': 'unknown'}, {})


class TestDealScore(unittest.TestCase):

    def test_maxima_sum_to_100(self):
        self.assertEqual(MAX_SCORE, 100)

    def test_total_and_breakdown(self):
        score = DealScore(cash_flow=12, appreciation=8, tenant_profile=4.5)
        self.assertEqual(score.total, 24.5)
        self.assertEqual(score.breakdown()['total'], 24.5)

    def test_perfect_score(self):
        self.assertEqual(DealScore(**SCORE_CATEGORIES).total, 100)

    def test_category_above_maximum_rejected(self):
        with self.assertRaises(ValidationError):
            DealScore(cash_flow=16)

    def test_negative_category_rejected(self):
        with self.assertRaises(ValidationError):
            DealScore(property_type=-1)


class TestPipeline(unittest.TestCase):

    def setUp(self):
        self.now = datetime(2024, 3, 31, 12, 0, 0)
        self.entries = [
            {'email': 'ann@example.com', 'status': 'lead', 'metadata': {'name': 'Ann'},
             'created_at': '2024-03-31T09:00:00'},
            {'email': 'bob@example.com', 'status': 'signup', 'metadata': {'phone': '555-0100'},
             'created_at': '2024-03-27T09:00:00'},
            {'email': 'cy@example.com', 'status': 'churned', 'metadata': {},
             'created_at': '2024-01-15T09:00:00'},
        ]

    def test_forward_moves_only(self):
        self.assertTrue(is_forward_move('lead', 'signup'))
        self.assertFalse(is_forward_move('paying_customer', 'checkout_started'))
        self.assertFalse(is_forward_move('signup', 'signup'))

    def test_churn_allowed_from_any_column(self):
        self.assertTrue(is_forward_move('paying_customer', 'churned'))
        self.assertFalse(is_forward_move('churned', 'churned'))

    def test_one_month_before_clamps_day(self):
        self.assertEqual(one_month_before(self.now), datetime(2024, 2, 29, 12, 0, 0))
        self.assertEqual(one_month_before(datetime(2024, 1, 10)), datetime(2023, 12, 10))

    def test_search_matches_name_email_phone(self):
        self.assertEqual(len(filter_entries(self.entries, search='ANN', now=self.now)), 1)
        self.assertEqual(len(filter_entries(self.entries, search='555', now=self.now)), 1)
        self.assertEqual(len(filter_entries(self.entries, search='example', now=self.now)), 3)

    def test_date_filters(self):
        self.assertEqual(len(filter_entries(self.entries, date='today', now=self.now)), 1)
        self.assertEqual(len(filter_entries(self.entries, date='week', now=self.now)), 2)
        self.assertEqual(len(filter_entries(self.entries, date='month', now=self.now)), 2)

    def test_status_filter(self):
        result = filter_entries(self.entries, status='churned', now=self.now)
        self.assertEqual([e['email'] for e in result], ['cy@example.com'])

    def test_group_by_column(self):
        board = group_by_column(self.entries)
        self.assertEqual(board[0]['id'], 'lead')
        self.assertEqual(board[0]['count'], 1)
        self.assertEqual(board[-1]['id'], 'churned')
        self.assertEqual(sum(column['count'] for column in board), 3)

    def test_lead_status_validated(self):
        with self.assertRaises(ValidationError):
            LeadCreate(email='x@example.com', status='prospect')


class TestDealModels(unittest.TestCase):

    def test_blank_address_rejected(self):
        with self.assertRaises(ValidationError):
            DealCreate(address='   ')

    def test_unknown_depth_rejected(self):
        with self.assertRaises(ValidationError):
            DealCreate(address='1 Main St', analysis_depth='deluxe')

    def test_premium_deals_are_priority(self):
        deal = new_deal('investor-1', '1 Main St', 'premium')
        self.assertTrue(deal['is_priority'])
        self.assertEqual(deal['status'], 'pending')
        self.assertEqual(deal['progress'], 0)
        self.assertEqual(credit_cost('premium'), 3)

    def test_can_read(self):
        deal = {'investor_id': 'investor-1'}
        self.assertTrue(can_read(deal, {'user_id': 'investor-1', 'role': 'investor'}))
        self.assertFalse(can_read(deal, {'user_id': 'investor-2', 'role': 'investor'}))
        self.assertTrue(can_read(deal, {'user_id': 'analyst-1', 'role': 'analyst'}))

    def test_current_documents_hides_replaced_versions(self):
        documents = [{'document_id': 'a', 'replaced_by': 'b'}, {'document_id': 'b'}]
        self.assertEqual([d['document_id'] for d in current_documents(documents)], ['b'])


class TestCreditModels(unittest.TestCase):

    def test_zero_adjustment_rejected(self):
        with self.assertRaises(ValidationError):
            CreditAdjustment(user_id='u1', amount=0)

    def test_transaction_sort_key_is_time_prefixed(self):
        transaction = new_transaction('u1', -2, 'debit')
        self.assertTrue(transaction['transaction_id'].startswith(transaction['created_at']))

    def test_unknown_transaction_type(self):
        with self.assertRaises(ValueError):
            new_transaction('u1', 5, 'gift')


if __name__ == '__main__':
    unittest.main()
