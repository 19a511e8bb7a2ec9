# Database models
from app.models.plan import Plan
from app.models.subscription import Subscription, SubscriptionStatus
from app.models.event import Event

__all__ = [
    "Plan",
    "Subscription",
    "SubscriptionStatus",
    "Event",
]
