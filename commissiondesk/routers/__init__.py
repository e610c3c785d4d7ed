"""Router package exports."""
from . import activities, analytics, auth, campaigns, dashboard, orders, profile, users

__all__ = [
    "activities",
    "analytics",
    "auth",
    "campaigns",
    "dashboard",
    "orders",
    "profile",
    "users",
]
