"""
Security Module
===============

Shared-secret verification for inbound Hotmart webhooks.

Hotmart sends the token configured in its dashboard as ``hottok`` in the
request body. The comparison is constant-time and failures never echo
either value back.
"""

import hmac
import logging
from typing import Optional

from wellness_api.core.errors import AuthenticationError, ConfigurationError

logger = logging.getLogger(__name__)


def tokens_match(candidate: str, expected: str) -> bool:
    """Constant-time string comparison."""
    return hmac.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))


def verify_webhook_token(token: str, secret: Optional[str]) -> None:
    """
    Check a webhook's shared secret against the configured one.

    Args:
        token: ``hottok`` from the validated payload.
        secret: Configured ``HOTMART_WEBHOOK_SECRET``.

    Raises:
        ConfigurationError: The deployment has no secret configured.
        AuthenticationError: The token does not match.
    """
    if not secret:
        logger.error("HOTMART_WEBHOOK_SECRET not configured")
        raise ConfigurationError()

    if not tokens_match(token, secret):
        logger.warning("Invalid hottok received")
        raise AuthenticationError()
