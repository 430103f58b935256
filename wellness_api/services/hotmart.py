"""
Hotmart Service
===============

Applies validated Hotmart purchase events to the subscription store.

Handles:
- Buyer resolution through the identity directory
- Activation (PURCHASE_APPROVED / PURCHASE_COMPLETE), guarded by the
  transaction id so replays are no-ops
- Deactivation (PURCHASE_REFUNDED / PURCHASE_CANCELED /
  SUBSCRIPTION_CANCELLATION), always applied

Nothing here retries. A failed write surfaces as a 500 and Hotmart
redelivers the notification on its own schedule.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Callable
import uuid

from wellness_api.core.errors import NotFoundError, PersistenceError
from wellness_api.schemas.hotmart import HotmartEvent
from wellness_api.services.identity import IdentityDirectory
from wellness_api.services.subscription_store import (
    SubscriptionStore,
    SubscriptionStoreError,
)
from wellness_api.utils.helpers import utc_now

logger = logging.getLogger(__name__)


class WebhookOutcome(str, Enum):
    """Success messages returned to Hotmart."""

    OK = "OK"
    ALREADY_PROCESSED = "Already processed"


class HotmartService:
    """Service for Hotmart webhook events."""

    def __init__(
        self,
        identity: IdentityDirectory,
        store: SubscriptionStore,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.identity = identity
        self.store = store
        self.clock = clock

    async def process_event(self, event: HotmartEvent) -> WebhookOutcome:
        """
        Apply one validated, authorized event.

        Args:
            event: Normalized webhook event.

        Returns:
            The outcome to acknowledge.

        Raises:
            NotFoundError: No user has the buyer's email.
            PersistenceError: The subscription write failed.
        """
        user = await self.identity.find_user_by_email(event.buyer_email)
        if user is None:
            logger.warning(
                "User lookup failed: event=%s transaction=%s",
                event.event_type.value,
                event.transaction_id,
            )
            raise NotFoundError("User not found")

        if event.is_activation:
            return await self._activate(user.user_id, event)

        if event.is_deactivation:
            return await self._deactivate(user.user_id, event)

        logger.info(
            "Ignoring unhandled event=%s for user=%s",
            event.event_type.value,
            user.user_id,
        )
        return WebhookOutcome.OK

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    async def _activate(
        self,
        user_id: uuid.UUID,
        event: HotmartEvent,
    ) -> WebhookOutcome:
        transaction_id = event.transaction_id

        if await self.store.has_active_transaction(transaction_id):
            logger.info(
                "Duplicate activation skipped: user=%s transaction=%s",
                user_id,
                transaction_id,
            )
            return WebhookOutcome.ALREADY_PROCESSED

        try:
            applied = await self.store.activate(user_id, transaction_id, self.clock())
        except SubscriptionStoreError as exc:
            logger.error(
                "Error activating subscription: user=%s transaction=%s error=%s",
                user_id,
                transaction_id,
                exc,
            )
            raise PersistenceError("Failed to activate") from exc

        if not applied:
            return await self._explain_skipped_activation(user_id, transaction_id)

        logger.info(
            "Subscription activated: user=%s transaction=%s",
            user_id,
            transaction_id,
        )
        return WebhookOutcome.OK

    async def _explain_skipped_activation(
        self,
        user_id: uuid.UUID,
        transaction_id: str,
    ) -> WebhookOutcome:
        """
        The conditional update matched no row: either a concurrent replay
        activated this transaction first, or the user has no subscription
        row yet.
        """
        subscription = await self.store.get_by_user_id(user_id)
        if subscription is not None:
            logger.info(
                "Concurrent activation already applied: user=%s transaction=%s",
                user_id,
                transaction_id,
            )
            return WebhookOutcome.ALREADY_PROCESSED

        logger.warning(
            "No subscription row to activate: user=%s transaction=%s",
            user_id,
            transaction_id,
        )
        return WebhookOutcome.OK

    async def _deactivate(
        self,
        user_id: uuid.UUID,
        event: HotmartEvent,
    ) -> WebhookOutcome:
        try:
            applied = await self.store.deactivate(user_id, self.clock())
        except SubscriptionStoreError as exc:
            logger.error(
                "Error deactivating subscription: user=%s transaction=%s error=%s",
                user_id,
                event.transaction_id,
                exc,
            )
            raise PersistenceError("Failed to deactivate") from exc

        if not applied:
            logger.warning(
                "No subscription row to deactivate: user=%s transaction=%s",
                user_id,
                event.transaction_id,
            )
        else:
            logger.info(
                "Subscription deactivated: user=%s event=%s transaction=%s",
                user_id,
                event.event_type.value,
                event.transaction_id,
            )
        return WebhookOutcome.OK
