"""Outcome notifications: event building and delivery."""

from notifier.backends import Notifier, OutboxNotifier, SendGridNotifier
from notifier.events import NotificationEvent, failure_event, success_event

__all__ = [
    "NotificationEvent",
    "Notifier",
    "OutboxNotifier",
    "SendGridNotifier",
    "failure_event",
    "success_event",
]
