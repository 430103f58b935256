"""
Validators
==========

Webhook payload validation.
"""

from typing import Any

from pydantic import ValidationError as PydanticValidationError

from wellness_api.core.errors import ValidationError
from wellness_api.schemas.hotmart import HotmartEvent, HotmartWebhookPayload

# Checked in order against the location of the first Pydantic error;
# the more specific prefix must come first.
_FIELD_ERRORS: tuple[tuple[tuple[str, ...], str, str], ...] = (
    (("hottok",), "hottok", "Invalid hottok"),
    (("event",), "event", "Invalid or unsupported event type"),
    (("data", "purchase"), "data.purchase.transaction", "Invalid or missing transaction ID"),
    (("data",), "data.buyer.email", "Invalid or missing buyer email"),
)


def _error_for_location(loc: tuple[Any, ...]) -> ValidationError:
    for prefix, field, message in _FIELD_ERRORS:
        if loc[: len(prefix)] == prefix:
            return ValidationError(message=message, field=field)
    return ValidationError(message="Invalid payload")


def validate_webhook_payload(body: Any) -> HotmartEvent:
    """
    Validate and normalize a decoded Hotmart webhook body.

    Fields are checked in the order hottok, event, buyer email,
    transaction id; the first failure is reported.

    Args:
        body: Decoded JSON body, of any type

    Returns:
        Normalized event (email lower-cased and trimmed, transaction trimmed)

    Raises:
        ValidationError: If the body is not an object or a field is invalid
    """
    if not isinstance(body, dict):
        raise ValidationError(message="Invalid payload")

    try:
        payload = HotmartWebhookPayload.model_validate(body)
    except PydanticValidationError as exc:
        errors = exc.errors()
        loc = tuple(errors[0].get("loc", ())) if errors else ()
        raise _error_for_location(loc) from None

    return HotmartEvent(
        shared_secret=payload.hottok,
        event_type=payload.event,
        buyer_email=payload.data.buyer.email.strip().lower(),
        transaction_id=payload.data.purchase.transaction,
    )
