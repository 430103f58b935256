"""
Database Models
===============

All models are imported here to ensure they are registered
with SQLAlchemy's metadata for migrations and relationships.
"""

from wellness_api.models.user import User
from wellness_api.models.subscription import Subscription, SubscriptionStatus

__all__ = [
    "User",
    "Subscription",
    "SubscriptionStatus",
]
