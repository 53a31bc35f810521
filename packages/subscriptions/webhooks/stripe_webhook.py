"""
Stripe webhook handler.

Verifies the signature, parses the payload into a typed provider event, and
hands it to the event processor. The HTTP status tells Stripe whether to
redeliver:
- 200: applied, duplicate, or irrelevant
- 400: bad signature or malformed payload (redelivery will not help)
- 429: another delivery or change holds the subscription, retry later
- 503: processing failed, retry later
"""

import stripe
from fastapi import Request, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from common.core.config import settings
from common.core.exceptions import UnsupportedEventError
from common.core.otel_axiom_exporter import get_logger
from packages.subscriptions.models.domain.stripe_webhooks import StripeWebhookPayload
from packages.subscriptions.models.domain.webhook_events import (
    EventReason,
    EventResult,
)
from packages.subscriptions.services.event_processor import EventProcessor
from packages.subscriptions.webhooks.event_parser import parse_stripe_event

logger = get_logger(__name__)

_REJECT_STATUS = {
    EventReason.IN_FLIGHT: status.HTTP_429_TOO_MANY_REQUESTS,
    EventReason.BUSY: status.HTTP_429_TOO_MANY_REQUESTS,
    EventReason.FAILED: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def result_to_response(result: EventResult) -> JSONResponse:
    if result.is_ack:
        status_code = status.HTTP_200_OK
    else:
        status_code = _REJECT_STATUS.get(
            result.reason, status.HTTP_503_SERVICE_UNAVAILABLE
        )
    return JSONResponse(status_code=status_code, content={"status": result.reason.value})


async def handle_stripe_webhook(request: Request) -> JSONResponse:
    """
    Handle incoming webhook from Stripe.

    Validates webhook signature and routes the typed event to the processor.
    """
    # Get raw body for signature verification
    payload_bytes = await request.body()
    sig_header = request.headers.get("stripe-signature")

    if not sig_header:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing stripe-signature header",
        )

    # Verify webhook signature
    try:
        stripe.Webhook.construct_event(
            payload_bytes, sig_header, settings.stripe_webhook_secret
        )
    except stripe.SignatureVerificationError as e:
        logger.error(f"Stripe webhook signature verification failed: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid signature"
        )
    except ValueError as e:
        logger.error(f"Stripe webhook payload is not valid JSON: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook payload"
        )

    try:
        payload = StripeWebhookPayload.model_validate_json(payload_bytes)
        event = parse_stripe_event(payload)
    except UnsupportedEventError as e:
        logger.info(
            f"Ignoring Stripe webhook: {e.message}",
            extra={"event_id": e.context.get("event_id")},
        )
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={"status": EventReason.IGNORED.value},
        )
    except ValidationError as e:
        logger.error(
            "Invalid Stripe webhook payload", extra={"validation_errors": e.errors()}
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook payload"
        )

    logger.info(
        f"Received Stripe webhook: {payload.type}",
        extra={
            "event_id": payload.id,
            "event_type": payload.type,
            "livemode": payload.livemode,
        },
    )

    result = await EventProcessor().handle(event)
    return result_to_response(result)
