"""
Notifiers

Customer email and operator alert channels for webhook handlers.
"""

from .base import Notifier
from .log import LogNotifier
from .pushover import PushoverNotifier

__all__ = ["Notifier", "LogNotifier", "PushoverNotifier"]
