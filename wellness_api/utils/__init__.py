"""
Utilities Module
================

Helper functions and validators.
"""

from wellness_api.utils.helpers import utc_now
from wellness_api.utils.validators import validate_webhook_payload

__all__ = ["utc_now", "validate_webhook_payload"]
