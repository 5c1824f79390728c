"""
Health check endpoint for ALB.
"""

import os
from typing import Dict, Any
from datetime import datetime

from dealscope.utils.response import success_response


def check(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Liveness probe for the load balancer."""
    return success_response(
        data={
            "status": "healthy",
            "service": "dealscope-api",
            "stage": os.getenv('STAGE', 'dev'),
            "request_id": getattr(context, 'aws_request_id', 'local'),
            "timestamp": datetime.utcnow().isoformat()
        },
        message="Service is healthy"
    )
