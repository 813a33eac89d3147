"""Public schema exports."""

from .graph import (
    ChangeNotification,
    ChangeNotificationBatch,
    GraphSubscription,
    SubscriptionRequest,
)
from .robot import ActivateResult, DeactivateResult, NotificationReceipt

__all__ = [
    "ActivateResult",
    "ChangeNotification",
    "ChangeNotificationBatch",
    "DeactivateResult",
    "GraphSubscription",
    "NotificationReceipt",
    "SubscriptionRequest",
]
