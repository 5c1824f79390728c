"""
Shared fixtures for handler tests: proxy events and a patched database.
"""

import json
from unittest.mock import MagicMock, patch

INVESTOR = {'user_id': 'investor-1', 'role': 'investor', 'email': 'investor@example.com'}
ANALYST = {'user_id': 'analyst-1', 'role': 'analyst', 'email': 'analyst@example.com'}


def make_event(body=None, user=None, path_params=None, query=None, headers=None, method='POST', path='/'):
    """Build an API Gateway proxy event; `user` fills the authorizer context."""
    event = {
        'httpMethod': method,
        'path': path,
        'headers': headers or {},
        'pathParameters': path_params,
        'queryStringParameters': query,
        'requestContext': {'identity': {'sourceIp': '127.0.0.1'}},
        'body': json.dumps(body) if body is not None else None
    }
    if user:
        event['requestContext']['authorizer'] = dict(user)
    return event


def parse(response):
    return json.loads(response['body'])


def patch_db(test_case, *modules):
    """Replace the `db` imported by each handler module with one shared mock."""
    mock_db = MagicMock()
    for module in modules:
        patcher = patch(f'dealscope.handlers.{module}.db', mock_db)
        patcher.start()
        test_case.addCleanup(patcher.stop)
    return mock_db
