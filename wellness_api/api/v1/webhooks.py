"""
Webhooks API Endpoints
======================

Handles purchase notifications from Hotmart.

Pipeline (each step short-circuits):
    1. Rate limit per forwarded client address (429)
    2. JSON decode and payload validation (400)
    3. Shared-secret check against HOTMART_WEBHOOK_SECRET (500 / 401)
    4. Buyer lookup and subscription transition (404 / 500)

Idempotency:
    Activation events carry Hotmart's purchase transaction id. A transaction
    already recorded on an active subscription is acknowledged with
    ``Already processed`` and not written again, so Hotmart's redeliveries
    are safe.
"""

import json
import logging

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse

from wellness_api.config import settings
from wellness_api.core.errors import CORS_HEADERS, ValidationError
from wellness_api.core.rate_limit import enforce_webhook_rate_limit
from wellness_api.core.security import verify_webhook_token
from wellness_api.dependencies import HotmartServiceDep
from wellness_api.schemas.hotmart import WebhookError, WebhookMessage
from wellness_api.utils.validators import validate_webhook_payload

logger = logging.getLogger(__name__)

router = APIRouter()


@router.options("/hotmart", include_in_schema=False)
async def hotmart_webhook_preflight() -> Response:
    """Answer CORS preflight without touching the body."""
    return Response(status_code=status.HTTP_200_OK, headers=CORS_HEADERS)


@router.post(
    "/hotmart",
    dependencies=[Depends(enforce_webhook_rate_limit)],
    response_model=WebhookMessage,
    responses={
        400: {"model": WebhookError, "description": "Invalid payload"},
        401: {"model": WebhookError, "description": "Invalid hottok"},
        404: {"model": WebhookError, "description": "Buyer has no account"},
        429: {"model": WebhookError, "description": "Rate limit exceeded"},
        500: {"model": WebhookError, "description": "Configuration or store failure"},
    },
)
async def hotmart_webhook(
    request: Request,
    hotmart_service: HotmartServiceDep,
) -> JSONResponse:
    """
    Handle Hotmart purchase lifecycle events.

    Events handled:
    - PURCHASE_APPROVED, PURCHASE_COMPLETE: activate the buyer's subscription
    - PURCHASE_REFUNDED, PURCHASE_CANCELED, SUBSCRIPTION_CANCELLATION:
      deactivate it

    Any other ``event`` value is rejected with 400.
    """
    # ── Parse payload ─────────────────────────────────────────────────────
    try:
        body = json.loads(await request.body())
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning("Invalid webhook payload: %s", type(e).__name__)
        raise ValidationError(message="Invalid payload")

    event = validate_webhook_payload(body)

    # ── Verify shared secret ──────────────────────────────────────────────
    verify_webhook_token(event.shared_secret, settings.HOTMART_WEBHOOK_SECRET)

    logger.info(
        "Webhook received: event=%s transaction=%s",
        event.event_type.value,
        event.transaction_id,
    )

    # ── Process event ─────────────────────────────────────────────────────
    outcome = await hotmart_service.process_event(event)

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"message": outcome.value},
        headers=CORS_HEADERS,
    )
