"""
Pydantic Schemas
================

Request/response schemas for API validation.
"""

from wellness_api.schemas.hotmart import (
    HotmartEvent,
    HotmartEventType,
    HotmartWebhookPayload,
    WebhookError,
    WebhookMessage,
)

__all__ = [
    "HotmartEvent",
    "HotmartEventType",
    "HotmartWebhookPayload",
    "WebhookError",
    "WebhookMessage",
]
