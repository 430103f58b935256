"""
Hotmart Webhook Schemas
=======================

Pydantic models for the Hotmart purchase notification body and the
normalized event handed to the processor.

Only the fields this service acts on are declared; Hotmart sends many
more and they are ignored.
"""

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"


class HotmartEventType(str, Enum):
    """Purchase lifecycle events accepted by the webhook."""

    PURCHASE_APPROVED = "PURCHASE_APPROVED"
    PURCHASE_COMPLETE = "PURCHASE_COMPLETE"
    PURCHASE_REFUNDED = "PURCHASE_REFUNDED"
    PURCHASE_CANCELED = "PURCHASE_CANCELED"
    SUBSCRIPTION_CANCELLATION = "SUBSCRIPTION_CANCELLATION"


ACTIVATION_EVENTS = frozenset({
    HotmartEventType.PURCHASE_APPROVED,
    HotmartEventType.PURCHASE_COMPLETE,
})

DEACTIVATION_EVENTS = frozenset({
    HotmartEventType.PURCHASE_REFUNDED,
    HotmartEventType.PURCHASE_CANCELED,
    HotmartEventType.SUBSCRIPTION_CANCELLATION,
})


# ─── Inbound payload ─────────────────────────────────────────────────────────


class HotmartBuyer(BaseModel):
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)


class HotmartPurchase(BaseModel):
    transaction: str = Field(min_length=1, max_length=255)

    @field_validator("transaction")
    @classmethod
    def strip_transaction(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("transaction must not be blank")
        return stripped


class HotmartData(BaseModel):
    buyer: HotmartBuyer
    purchase: HotmartPurchase


class HotmartWebhookPayload(BaseModel):
    """
    Body of a Hotmart webhook (v1 "postback" format).

    ``{"hottok": "...", "event": "...",
       "data": {"buyer": {"email": "..."}, "purchase": {"transaction": "..."}}}``
    """

    model_config = ConfigDict(extra="ignore")

    hottok: str = Field(min_length=1, max_length=512)
    event: HotmartEventType
    data: HotmartData


# ─── Normalized event ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class HotmartEvent:
    """Validated, normalized webhook event."""

    shared_secret: str = field(repr=False)
    event_type: HotmartEventType
    buyer_email: str
    transaction_id: str

    @property
    def is_activation(self) -> bool:
        return self.event_type in ACTIVATION_EVENTS

    @property
    def is_deactivation(self) -> bool:
        return self.event_type in DEACTIVATION_EVENTS


# ─── Responses ───────────────────────────────────────────────────────────────


class WebhookMessage(BaseModel):
    """Successful webhook acknowledgement."""

    message: str = Field(examples=["OK", "Already processed"])


class WebhookError(BaseModel):
    """Uniform error body."""

    error: str = Field(examples=["Unauthorized"])
