"""Notifier that only writes to the application log."""

import logging
from typing import Any

from .base import Notifier

logger = logging.getLogger(__name__)


class LogNotifier(Notifier):
    @property
    def channel_name(self) -> str:
        return "log"

    async def send(self, template: str, data: dict[str, Any]) -> None:
        logger.info(f"Notification '{template}' prepared: {data}")
