"""
AWS Lambda handler for Identity Reconciliation System
This module adapts the FastAPI application to work with AWS Lambda + API Gateway
"""

import json
import logging

from mangum import Mangum

from main import app

logger = logging.getLogger(__name__)

# Lifespan events are not used; tables are created by create_tables.py
handler = Mangum(
    app,
    lifespan="off",
    api_gateway_base_path="/",
    text_mime_types=[
        "application/json",
        "text/plain",
    ],
    exclude_headers=["x-amzn-trace-id"]
)


def describe_event(event: dict) -> str:
    """Short 'METHOD path' description of an API Gateway event"""
    if event.get('version') == '2.0':
        http = event.get('requestContext', {}).get('http', {})
        return f"API Gateway v2: {http.get('method', 'UNKNOWN')} {http.get('path', 'UNKNOWN')}"
    if 'httpMethod' in event:
        return f"API Gateway v1: {event.get('httpMethod', 'UNKNOWN')} {event.get('path', 'UNKNOWN')}"
    return f"Unknown event format with keys {sorted(event.keys())}"


def error_response(request_id: str) -> dict:
    """API Gateway response returned when the adapter itself fails"""
    return {
        "statusCode": 500,
        "headers": {
            "Content-Type": "application/json",
            "Access-Control-Allow-Origin": "*",
        },
        "body": json.dumps({
            "error": "InternalServerError",
            "message": "An unexpected error occurred",
            "requestId": request_id
        })
    }


def lambda_handler(event, context):
    """
    AWS Lambda entry point

    Args:
        event: API Gateway event data
        context: Lambda runtime context

    Returns:
        API Gateway response format
    """
    logger.info(f"Lambda {context.function_name}: {describe_event(event)}")

    try:
        response = handler(event, context)
    except Exception as e:
        logger.error(f"Lambda handler error: {e}", exc_info=True)
        return error_response(context.aws_request_id)

    logger.info(f"Mangum response status: {response.get('statusCode', 'UNKNOWN')}")
    return response
