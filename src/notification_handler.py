"""
AWS Lambda handler for shipment-created notifications.

Thin orchestration layer that delegates to NotificationDispatcher.
Accepts {shipmentData, documentResults} either as the event itself (direct
invoke) or as the JSON body of an API Gateway request.
"""

import json
import logging
import os
from typing import Any, Dict, Optional

from config import NotificationConfig
from domain.errors import ValidationError
from domain.notification_dispatcher import NotificationDispatcher
from integrations.mail_transport import create_transport

# Configure logging
logger = logging.getLogger()
logger.setLevel(os.environ.get('LOG_LEVEL', 'INFO').upper())

# Add console handler for local testing (AWS Lambda provides handlers automatically)
if not logger.handlers:
    console_handler = logging.StreamHandler()
    formatter = logging.Formatter('%(levelname)s - %(name)s - %(message)s')
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

# Created on first invocation and reused while the container stays warm
_dispatcher: Optional[NotificationDispatcher] = None


def get_dispatcher() -> NotificationDispatcher:
    """
    Build the dispatcher from environment configuration.

    Raises:
        ConfigurationError: If configuration is invalid (fails the invocation)
    """
    global _dispatcher

    if _dispatcher is None:
        config = NotificationConfig.from_environment().validate()
        _dispatcher = NotificationDispatcher(config=config, transport=create_transport(config))

    return _dispatcher


def _extract_payload(event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Unwrap API Gateway events; direct invocations pass the payload as-is.

    Raises:
        ValidationError: If the body is not a JSON object
    """
    if 'body' not in event:
        return event

    body = event['body']
    if isinstance(body, dict):
        return body

    try:
        payload = json.loads(body or '{}')
    except json.JSONDecodeError as e:
        raise ValidationError(f"Request body is not valid JSON: {e}")

    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def send_notifications(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Send all notifications for a newly created shipment.

    Can be called directly by other functions in the same deployment.

    Args:
        payload: {"shipmentData": {...}, "documentResults": [...]}

    Returns:
        {"success": bool, "message": str, "results": [...]}

    Raises:
        ValidationError: If shipmentData or documentResults are missing/invalid
        DocumentVerificationError: If document verification fails under the
            "abort" policy
    """
    summary = get_dispatcher().dispatch(
        payload.get('shipmentData'),
        payload.get('documentResults'),
    )
    return summary.to_dict()


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'headers': {
            'Content-Type': 'application/json'
        },
        'body': json.dumps(body)
    }


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Process a shipment notification request.

    Args:
        event: Payload or API Gateway proxy event
        context: Lambda context

    Returns:
        Dict with statusCode and JSON body (200 summary, 400 invalid input,
        500 configuration or verification failure)
    """
    logger.info("=" * 70)
    logger.info("Shipment Notifications - Started")
    logger.info("=" * 70)

    try:
        payload = _extract_payload(event)
        result = send_notifications(payload)

        succeeded = sum(1 for r in result['results'] if r['success'])
        logger.info(
            f"Notifications complete: {succeeded}/{len(result['results'])} recipient class(es) succeeded"
        )
        return _response(200, result)

    except ValidationError as ve:
        logger.error(f"Validation error: {ve}")
        return _response(400, {'success': False, 'error': str(ve)})

    except Exception as e:
        logger.error(f"Error sending shipment notifications: {e}", exc_info=True)
        return _response(500, {
            'success': False,
            'error': 'Internal server error',
            'message': str(e)
        })


def health_check(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Simple health check endpoint for monitoring.
    """
    config = NotificationConfig.from_environment()
    return _response(200, {
        'status': 'healthy',
        'environment': config.environment,
        'mailTransport': config.mail_transport,
        'mailConfigured': config.mail_transport == 'ses' or bool(config.sendgrid_api_key)
    })
