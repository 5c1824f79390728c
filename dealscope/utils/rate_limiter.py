"""
Rate limiting for public and authentication endpoints.
Uses Redis so every Lambda container shares the same buckets.
"""

import os
import time
import logging
from functools import wraps
from typing import Dict, Any, Optional, Callable, Tuple
import redis

from dealscope.utils.response import error_response

logger = logging.getLogger()
logger.setLevel(logging.INFO)


class RateLimiter:
    """
    Token bucket rate limiter backed by Redis.

    When REDIS_URL is not set, or Redis fails, every request is allowed.
    """

    def __init__(self, redis_client: Optional[redis.Redis] = None):
        self.redis_client = redis_client or self._get_redis_client()
        self.enabled = self.redis_client is not None

    def _get_redis_client(self) -> Optional[redis.Redis]:
        redis_url = os.environ.get('REDIS_URL')
        if not redis_url:
            logger.warning("REDIS_URL not configured, rate limiting disabled")
            return None

        try:
            client = redis.from_url(redis_url, decode_responses=True)
            client.ping()
            return client
        except redis.RedisError as e:
            logger.error(f"Failed to connect to Redis: {str(e)}")
            return None

    def check_rate_limit(
        self,
        identifier: str,
        max_requests: int = 60,
        window_seconds: int = 60,
        burst_size: Optional[int] = None
    ) -> Tuple[bool, Dict[str, Any]]:
        """
        Take one token from the bucket of `identifier`.

        Args:
            identifier: Bucket name (user id, source IP, route)
            max_requests: Tokens refilled per window
            window_seconds: Refill window in seconds
            burst_size: Bucket capacity (defaults to max_requests)

        Returns:
            Tuple of (allowed, metadata)
        """
        if not self.enabled:
            return True, {'rate_limit_enabled': False}

        burst_size = burst_size or max_requests
        key = f"dealscope:rate_limit:{identifier}"

        try:
            tokens, last_refill = self.redis_client.hmget(key, 'tokens', 'last_refill')

            now = time.time()
            tokens = float(tokens) if tokens is not None else float(burst_size)
            last_refill = float(last_refill) if last_refill is not None else now

            refill_rate = max_requests / window_seconds
            tokens = min(burst_size, tokens + (now - last_refill) * refill_rate)

            metadata = {
                'rate_limit_enabled': True,
                'max_requests': max_requests,
                'window_seconds': window_seconds
            }

            if tokens < 1:
                metadata['tokens_remaining'] = 0
                metadata['retry_after'] = int((1 - tokens) / refill_rate) + 1
                return False, metadata

            tokens -= 1
            pipe = self.redis_client.pipeline()
            pipe.hset(key, mapping={'tokens': tokens, 'last_refill': now})
            pipe.expire(key, window_seconds * 2)
            pipe.execute()

            metadata['tokens_remaining'] = int(tokens)
            metadata['retry_after'] = None
            return True, metadata

        except redis.RedisError as e:
            logger.error(f"Rate limit check failed: {str(e)}")
            return True, {'rate_limit_enabled': False, 'error': str(e)}


# Global rate limiter instance
rate_limiter = RateLimiter()


def get_ip_identifier(event: Dict[str, Any]) -> str:
    """Bucket per source IP."""
    ip = ((event.get('requestContext') or {}).get('identity') or {}).get('sourceIp', 'unknown')
    return f"ip:{ip}"


def get_user_identifier(event: Dict[str, Any]) -> str:
    """Bucket per authenticated user, falling back to the source IP."""
    user_id = ((event.get('requestContext') or {}).get('authorizer') or {}).get('user_id')
    if user_id:
        return f"user:{user_id}"
    return get_ip_identifier(event)


def rate_limit(
    max_requests: int = 60,
    window_seconds: int = 60,
    identifier_func: Optional[Callable] = None,
    burst_size: Optional[int] = None,
    scope: Optional[str] = None
):
    """
    Decorator for rate limiting Lambda handlers.

    `scope` separates the buckets of different endpoints sharing an identifier.
    """
    def decorator(func):
        bucket_scope = scope or func.__name__

        @wraps(func)
        def wrapper(event: Dict[str, Any], context: Any, *args, **kwargs) -> Dict[str, Any]:
            identifier = (identifier_func or get_ip_identifier)(event)

            allowed, metadata = rate_limiter.check_rate_limit(
                f"{bucket_scope}:{identifier}",
                max_requests=max_requests,
                window_seconds=window_seconds,
                burst_size=burst_size
            )

            if not allowed:
                retry_after = metadata.get('retry_after', window_seconds)
                response = error_response(
                    message="Too many requests. Please try again later.",
                    status_code=429,
                    error_code="RATE_LIMITED",
                    details={'retry_after': retry_after}
                )
                response['headers'].update({
                    'Retry-After': str(retry_after),
                    'X-RateLimit-Limit': str(max_requests),
                    'X-RateLimit-Remaining': '0'
                })
                return response

            response = func(event, context, *args, **kwargs)

            if metadata.get('rate_limit_enabled') and isinstance(response, dict) and 'headers' in response:
                response['headers'].update({
                    'X-RateLimit-Limit': str(max_requests),
                    'X-RateLimit-Remaining': str(metadata.get('tokens_remaining', 0)),
                    'X-RateLimit-Reset': str(int(time.time() + window_seconds))
                })

            return response

        return wrapper
    return decorator


# Common rate limit configurations
AUTH_RATE_LIMIT = {
    'max_requests': 5,
    'window_seconds': 300,
    'burst_size': 3
}

PUBLIC_FORM_RATE_LIMIT = {
    'max_requests': 10,
    'window_seconds': 60,
    'burst_size': 5
}

STANDARD_RATE_LIMIT = {
    'max_requests': 60,
    'window_seconds': 60,
    'burst_size': 20
}
