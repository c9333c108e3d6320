"""
AWS Lambda handler for the Network Commission Engine API.

This is the production entry point for AWS Lambda deployments.
For local development, use main.py (Flask app) instead.
"""

import json
import logging
import os

from network_engine import NetworkProcessor, NotFoundError, PolicyViolation
from network_engine.config import EngineConfig
from network_engine.output import OutputBuilder

# Configure logging
logger = logging.getLogger()
logger.setLevel(logging.INFO)

# Environment (dev, staging, prod)
ENVIRONMENT = os.environ.get("ENVIRONMENT", "dev")

# Initialize processor (reused across warm invocations)
processor = NetworkProcessor(EngineConfig.from_env())
output_builder = OutputBuilder()

# CORS headers for API Gateway
CORS_HEADERS = {
    "Content-Type": "application/json",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,Authorization",
    "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
}

# POST routes -> (processor operation, label for logs)
OPERATIONS = {
    "/commissions-summary": (processor.process_from_dict, "commission summary"),
    "/commissions/balance": (processor.balance_from_dict, "commission balance"),
    "/payments": (processor.apply_payment_from_dict, "payment"),
    "/reconcile": (processor.reconcile_from_dict, "reconciliation"),
    "/rates": (processor.append_rates_from_dict, "rate change"),
    "/sales/buyback": (processor.settle_buyback_from_dict, "buyback"),
}


def lambda_handler(event, context):
    """
    Main Lambda entry point.

    Handles API Gateway events for:
    - GET /health
    - GET /api
    - POST routes listed in OPERATIONS
    - OPTIONS (CORS preflight)
    """
    # Handle CORS preflight
    http_method = event.get("httpMethod") or event.get("requestContext", {}).get("http", {}).get("method", "")
    if http_method == "OPTIONS":
        return {"statusCode": 200, "headers": CORS_HEADERS, "body": ""}

    # Get path (supports both REST API and HTTP API formats)
    path = event.get("path") or event.get("rawPath", "")

    # Route to appropriate handler
    if path == "/health" and http_method == "GET":
        return handle_health()
    elif path == "/api" and http_method == "GET":
        return handle_api_info()
    elif path in OPERATIONS and http_method == "POST":
        operation, label = OPERATIONS[path]
        return handle_operation(event, operation, label)
    else:
        return _response(404, {"error": "Not found", "path": path})


def _response(status_code, body):
    return {"statusCode": status_code, "headers": CORS_HEADERS, "body": json.dumps(body)}


def handle_health():
    """Health check endpoint."""
    return _response(200, {"status": "healthy", "environment": ENVIRONMENT})


def handle_api_info():
    """API information endpoint."""
    return _response(
        200,
        {
            "status": "ok",
            "message": "Network Commission Engine API",
            "version": "1.0",
            "environment": ENVIRONMENT,
            "runtime": "AWS Lambda",
            "endpoints": {path: f"{path} [POST]" for path in OPERATIONS} | {"/health": "/health [GET]"},
        },
    )


def handle_operation(event, operation, label):
    """Parse the request body and run one processor operation."""
    try:
        # Parse request body
        body = event.get("body", "")
        if isinstance(body, str):
            if not body:
                return _response(400, {"error": "No input data provided", "status": "failed"})
            # Handle base64 encoded body (API Gateway)
            if event.get("isBase64Encoded"):
                import base64

                body = base64.b64decode(body).decode("utf-8")
            input_data = json.loads(body)
        else:
            input_data = body

        if not input_data:
            return _response(400, {"error": "No input data provided", "status": "failed"})

        logger.info(f"Processing {label}")
        result = operation(input_data)
        logger.info(f"{label} processed successfully")

        return _response(200, result)

    except json.JSONDecodeError as e:
        logger.error(f"JSON parse error: {str(e)}")
        return _response(400, {"error": f"Invalid JSON: {str(e)}", "status": "failed"})

    except PolicyViolation as e:
        logger.warning(f"{label} rejected ({e.reason}): {e.message}")
        payload = {"error": e.message, "reason": e.reason, "status": "rejected"}
        if e.transition is not None:
            payload["transition"] = output_builder.build_transition(e.transition)
        return _response(400, payload)

    except NotFoundError as e:
        logger.warning(f"{label}: {str(e)}")
        return _response(404, {"error": str(e), "status": "not_found"})

    except (ValueError, KeyError, TypeError) as e:
        # Validation errors from engine (missing fields, invalid types, etc.)
        logger.error(f"Validation error: {str(e)}")
        return _response(400, {"error": f"Validation error: {str(e)}", "status": "validation_failed"})

    except Exception as e:
        # Unexpected errors - log details but return generic message to avoid information disclosure
        logger.error(f"Unexpected processing error: {str(e)}", exc_info=True)
        return _response(500, {"error": "An unexpected error occurred during processing", "status": "failed"})
