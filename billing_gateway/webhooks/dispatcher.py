"""Routes verified notifications to their lifecycle handler."""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable

from billing_gateway.errors import HandlerError
from billing_gateway.notifiers import Notifier
from billing_gateway.storage import Store

from .events import DispatchResult, InboundNotification, SubscriptionEvent, utcnow
from .handlers import HANDLERS, HandlerContext

logger = logging.getLogger(__name__)


class Dispatcher:
    """Runs one handler per notification against the injected collaborators.

    Unknown events are acknowledged as ignored. Deliveries already in the
    store's event ledger are acknowledged without re-running the handler.
    """

    def __init__(
        self,
        store: Store,
        notifier: Notifier,
        *,
        handler_timeout: float = 5.0,
        notify_timeout: float = 3.0,
        grace_period_days: int = 7,
        app_url: str = "",
        support_email: str = "",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.handler_timeout = handler_timeout
        self.notify_timeout = notify_timeout
        self.grace_period_days = grace_period_days
        self.app_url = app_url
        self.support_email = support_email
        self.clock = clock

    async def dispatch(self, notification: InboundNotification, event_key: str | None = None) -> DispatchResult:
        event = SubscriptionEvent.parse(notification.event)
        if event is None:
            logger.warning(f"Unhandled event type: {notification.event}")
            return DispatchResult(
                status="ignored",
                message=f"Event {notification.event} received but not handled",
                event_type=notification.event,
            )

        ctx = HandlerContext(
            notification=notification,
            store=self.store,
            now=self.clock(),
            app_url=self.app_url,
            support_email=self.support_email,
            grace_period_days=self.grace_period_days,
        )

        try:
            if event_key and await self.store.has_processed(event_key):
                logger.info(f"Event {event.value} ({event_key}) already processed, skipping")
                return DispatchResult(
                    status="ignored",
                    message=f"Event {event.value} already processed",
                    event_type=event.value,
                    duplicate=True,
                )

            async with self.store.transaction():
                result = await asyncio.wait_for(HANDLERS[event](ctx), timeout=self.handler_timeout)
                if event_key:
                    await self.store.mark_processed(event_key, event.value)
        except asyncio.TimeoutError as e:
            logger.error(f"Handler for {event.value} timed out after {self.handler_timeout}s")
            raise HandlerError(event.value, e, retryable=True) from e
        except Exception as e:
            logger.error(f"Handler for {event.value} failed: {e}")
            raise HandlerError(event.value, e) from e

        await self._flush(ctx.outbox)
        logger.info(f"Event {event.value} processed successfully")
        return result

    async def _flush(self, outbox: list[tuple[str, dict[str, Any]]]) -> None:
        """Send queued notifications. Failures are logged, never raised."""
        for template, data in outbox:
            try:
                await asyncio.wait_for(self.notifier.send(template, data), timeout=self.notify_timeout)
            except Exception as e:
                logger.warning(f"Notification '{template}' via {self.notifier.channel_name} failed: {e!r}")
