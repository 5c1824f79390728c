"""
API response utilities for consistent response formatting.
"""

import os
import json
import base64
from decimal import Decimal
from typing import Any, Dict, Optional


def decimal_default(obj):
    """Serialize DynamoDB Decimal values as int or float."""
    if isinstance(obj, Decimal):
        return int(obj) if obj % 1 == 0 else float(obj)
    return str(obj)


def cors_headers(content_type: str = "application/json") -> Dict[str, str]:
    """Default CORS headers attached to every response."""
    return {
        "Content-Type": content_type,
        "Access-Control-Allow-Origin": os.getenv("ALLOWED_ORIGIN", "*"),
        "Access-Control-Allow-Headers": "Content-Type,X-Amz-Date,Authorization,X-Api-Key,X-Amz-Security-Token,Stripe-Signature",
        "Access-Control-Allow-Methods": "GET,POST,PUT,PATCH,DELETE,OPTIONS"
    }


def success_response(
    data: Any = None,
    message: str = "Success",
    status_code: int = 200
) -> Dict[str, Any]:
    """Create a success response."""
    body = {
        "success": True,
        "message": message,
        "data": data
    }

    return {
        "statusCode": status_code,
        "headers": cors_headers(),
        "body": json.dumps(body, default=decimal_default)
    }


def error_response(
    message: str = "An error occurred",
    status_code: int = 400,
    error_code: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Create an error response."""
    body = {
        "success": False,
        "message": message,
        "error_code": error_code,
        "details": details
    }

    return {
        "statusCode": status_code,
        "headers": cors_headers(),
        "body": json.dumps(body, default=decimal_default)
    }


def file_response(
    content: bytes,
    filename: str,
    content_type: str = "application/pdf"
) -> Dict[str, Any]:
    """Create a binary attachment response (base64 encoded for API Gateway)."""
    headers = cors_headers(content_type)
    headers["Content-Disposition"] = f'attachment; filename="{filename}"'

    return {
        "statusCode": 200,
        "headers": headers,
        "body": base64.b64encode(content).decode("ascii"),
        "isBase64Encoded": True
    }


def text_response(content: str, filename: str, content_type: str = "text/csv") -> Dict[str, Any]:
    """Create a plain text attachment response."""
    headers = cors_headers(content_type)
    headers["Content-Disposition"] = f'attachment; filename="{filename}"'

    return {
        "statusCode": 200,
        "headers": headers,
        "body": content
    }


def preflight_response() -> Dict[str, Any]:
    """Answer a CORS preflight request."""
    return {
        "statusCode": 204,
        "headers": cors_headers(),
        "body": ""
    }


def validation_error_response(errors: Any) -> Dict[str, Any]:
    """Create a validation error response."""
    return error_response(
        message="Validation failed",
        status_code=422,
        error_code="VALIDATION_ERROR",
        details={"validation_errors": errors}
    )


def unauthorized_response(message: str = "Unauthorized") -> Dict[str, Any]:
    """Create an unauthorized response."""
    return error_response(
        message=message,
        status_code=401,
        error_code="UNAUTHORIZED"
    )


def forbidden_response(message: str = "Forbidden") -> Dict[str, Any]:
    """Create a forbidden response."""
    return error_response(
        message=message,
        status_code=403,
        error_code="FORBIDDEN"
    )


def not_found_response(message: str = "Not found") -> Dict[str, Any]:
    """Create a not found response."""
    return error_response(
        message=message,
        status_code=404,
        error_code="NOT_FOUND"
    )


def server_error_response(message: str = "Internal server error") -> Dict[str, Any]:
    """Create a server error response."""
    return error_response(
        message=message,
        status_code=500,
        error_code="INTERNAL_ERROR"
    )


def error_from_exception(exc: Exception) -> Dict[str, Any]:
    """Turn a DealScopeError into its matching error response."""
    return error_response(
        message=str(exc),
        status_code=getattr(exc, "status_code", 500),
        error_code=getattr(exc, "error_code", "INTERNAL_ERROR")
    )


def parse_body(event: Dict[str, Any]) -> Dict[str, Any]:
    """Decode the JSON object body of a proxy event (raises json.JSONDecodeError)."""
    body = event.get('body') or '{}'
    if isinstance(body, dict):
        return body
    if event.get('isBase64Encoded'):
        body = base64.b64decode(body).decode('utf-8')
    parsed = json.loads(body)
    if not isinstance(parsed, dict):
        raise json.JSONDecodeError("Request body must be a JSON object", body, 0)
    return parsed


def path_param(event: Dict[str, Any], name: str) -> Optional[str]:
    """Read a path parameter from a proxy event."""
    return (event.get('pathParameters') or {}).get(name)


def query_params(event: Dict[str, Any]) -> Dict[str, str]:
    """Read query string parameters from a proxy event."""
    return event.get('queryStringParameters') or {}
