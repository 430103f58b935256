"""
Subscription Models
===================

One subscription row per user, mutated by the Hotmart webhook.
"""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional
import uuid

from sqlalchemy import (
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    String,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wellness_api.db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from wellness_api.models.user import User


class SubscriptionStatus(str, Enum):
    """Entitlement state gating premium content."""
    ACTIVE = "active"
    INACTIVE = "inactive"


class Subscription(Base, TimestampMixin):
    """
    Subscription model with Hotmart integration.

    ``expires_at`` is NULL while active with no known expiry, and is
    stamped with the deactivation time when the entitlement ends.
    """

    __tablename__ = "subscriptions"

    subscription_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )

    status: Mapped[SubscriptionStatus] = mapped_column(
        SQLEnum(
            SubscriptionStatus,
            name="subscriptionstatus",
            values_callable=lambda enum: [member.value for member in enum],
        ),
        default=SubscriptionStatus.INACTIVE,
        nullable=False,
    )
    activated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Last applied Hotmart purchase transaction (idempotency key)
    hotmart_transaction_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )

    user: Mapped["User"] = relationship(
        "User",
        back_populates="subscription",
    )

    __table_args__ = (
        Index("idx_subscription_transaction_status", "hotmart_transaction_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Subscription(user_id={self.user_id}, status={self.status})>"

    @property
    def is_active(self) -> bool:
        """Check if the entitlement is currently granted."""
        return self.status == SubscriptionStatus.ACTIVE
