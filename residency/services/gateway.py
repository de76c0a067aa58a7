"""
Payment gateway webhook authentication.

Events are only trusted after the `Stripe-Signature` header has been checked
against the shared endpoint secret. The body is parsed afterwards, so an
unsigned or tampered payload is never interpreted.
"""

import json
from typing import Optional

import stripe

from residency.core.config import get_settings
from residency.core.exceptions import MalformedWebhookPayload, WebhookSignatureInvalid
from residency.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

SIGNATURE_HEADER = "Stripe-Signature"


def parse_verified_event(payload: bytes, signature_header: Optional[str]) -> dict:
    """Verify the signature and return the decoded event body."""
    if not signature_header:
        logger.warning("webhook_signature_missing")
        raise WebhookSignatureInvalid("Missing webhook signature")

    try:
        body = payload.decode("utf-8")
    except UnicodeDecodeError:
        raise MalformedWebhookPayload("Webhook body is not valid UTF-8")

    try:
        stripe.WebhookSignature.verify_header(
            body,
            signature_header,
            settings.STRIPE_WEBHOOK_SECRET,
            tolerance=settings.STRIPE_WEBHOOK_TOLERANCE,
        )
    except stripe.SignatureVerificationError as e:
        logger.warning("webhook_signature_invalid", error=str(e))
        raise WebhookSignatureInvalid()

    try:
        event = json.loads(body)
    except ValueError:
        raise MalformedWebhookPayload("Webhook body is not valid JSON")

    if not isinstance(event, dict):
        raise MalformedWebhookPayload("Webhook body must be a JSON object")
    return event
