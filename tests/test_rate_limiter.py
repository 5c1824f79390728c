"""
Tests for the Redis token bucket and the rate_limit decorator.
"""

import json
import unittest
from unittest.mock import MagicMock, patch

import redis

from dealscope.utils.rate_limiter import RateLimiter, rate_limit, get_user_identifier
from dealscope.utils.response import success_response

from helpers import INVESTOR, make_event


class TestRateLimiter(unittest.TestCase):

    def setUp(self):
        self.client = MagicMock()
        self.limiter = RateLimiter(redis_client=self.client)

    def test_new_bucket_starts_full(self):
        self.client.hmget.return_value = [None, None]
        allowed, metadata = self.limiter.check_rate_limit('ip:1.2.3.4', max_requests=5, window_seconds=60)

        self.assertTrue(allowed)
        self.assertEqual(metadata['tokens_remaining'], 4)
        self.client.hmget.assert_called_once_with('dealscope:rate_limit:ip:1.2.3.4', 'tokens', 'last_refill')

    @patch('dealscope.utils.rate_limiter.time.time', return_value=1000.0)
    def test_empty_bucket_refuses(self, _):
        self.client.hmget.return_value = ['0.5', '1000.0']
        allowed, metadata = self.limiter.check_rate_limit('ip:1.2.3.4', max_requests=60, window_seconds=60)

        self.assertFalse(allowed)
        self.assertEqual(metadata['retry_after'], 1)
        self.client.pipeline.assert_not_called()

    def test_redis_failure_fails_open(self):
        self.client.hmget.side_effect = redis.ConnectionError('down')
        allowed, metadata = self.limiter.check_rate_limit('ip:1.2.3.4')

        self.assertTrue(allowed)
        self.assertFalse(metadata['rate_limit_enabled'])

    def test_user_identifier_prefers_authorizer(self):
        self.assertEqual(get_user_identifier(make_event(user=INVESTOR)), 'user:investor-1')
        self.assertEqual(get_user_identifier(make_event()), 'ip:127.0.0.1')


class TestRateLimitDecorator(unittest.TestCase):

    def test_limited_request_gets_429(self):
        limiter = MagicMock()
        limiter.check_rate_limit.return_value = (False, {'retry_after': 12})

        @rate_limit(max_requests=2, window_seconds=60)
        def handler(event, context):
            return success_response()

        with patch('dealscope.utils.rate_limiter.rate_limiter', limiter):
            response = handler(make_event(), None)

        self.assertEqual(response['statusCode'], 429)
        self.assertEqual(response['headers']['Retry-After'], '12')
        self.assertEqual(json.loads(response['body'])['error_code'], 'RATE_LIMITED')
        limiter.check_rate_limit.assert_called_once_with(
            'handler:ip:127.0.0.1', max_requests=2, window_seconds=60, burst_size=None
        )

    def test_allowed_request_reports_remaining(self):
        limiter = MagicMock()
        limiter.check_rate_limit.return_value = (True, {'rate_limit_enabled': True, 'tokens_remaining': 7})

        @rate_limit(max_requests=10, window_seconds=60, scope='forms')
        def handler(event, context):
            return success_response()

        with patch('dealscope.utils.rate_limiter.rate_limiter', limiter):
            response = handler(make_event(), None)

        self.assertEqual(response['statusCode'], 200)
        self.assertEqual(response['headers']['X-RateLimit-Remaining'], '7')
        self.assertEqual(limiter.check_rate_limit.call_args[0][0], 'forms:ip:127.0.0.1')


if __name__ == '__main__':
    unittest.main()
