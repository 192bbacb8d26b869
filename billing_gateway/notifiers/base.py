"""Base notifier interface for customer emails and operator alerts."""

from abc import ABC, abstractmethod
from typing import Any


class Notifier(ABC):
    """Abstract notification collaborator."""

    @property
    @abstractmethod
    def channel_name(self) -> str:
        """Return channel identifier."""
        pass

    @abstractmethod
    async def send(self, template: str, data: dict[str, Any]) -> None:
        """Deliver a message rendered from ``template`` and ``data``.

        Raises NotificationDeliveryError when the channel rejects it.
        """
        pass
