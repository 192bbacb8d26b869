"""Subscription lifecycle handlers, one per SubscriptionEvent.

Each handler reads the notification, applies its writes through the
context's store and queues customer emails on the context outbox. The
dispatcher runs handlers inside a store transaction and only flushes the
outbox after that transaction commits.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Awaitable, Callable

from billing_gateway.storage import Store

from .events import DispatchResult, InboundNotification, SubscriptionEvent, from_unix
from .plans import plan_name, templates_count

logger = logging.getLogger(__name__)


@dataclass
class HandlerContext:
    notification: InboundNotification
    store: Store
    now: datetime
    app_url: str = ""
    support_email: str = ""
    grace_period_days: int = 7
    outbox: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    @property
    def subscription(self) -> dict[str, Any]:
        entity = self.notification.subscription
        if not entity or not entity.get("id"):
            raise ValueError(f"{self.notification.event}: payload.subscription.entity.id missing")
        return entity

    @property
    def payment(self) -> dict[str, Any]:
        entity = self.notification.payment
        if not entity or not entity.get("id"):
            raise ValueError(f"{self.notification.event}: payload.payment.entity.id missing")
        return entity

    def notify(self, template: str, data: dict[str, Any]) -> None:
        """Queue a customer email; sent after the handler's writes commit."""
        self.outbox.append((template, data))

    def url(self, path: str) -> str:
        return f"{self.app_url.rstrip('/')}{path}"


Handler = Callable[[HandlerContext], Awaitable[DispatchResult]]


async def _update_user(ctx: HandlerContext, customer_id: str | None, fields: dict[str, Any]) -> None:
    if customer_id:
        await ctx.store.upsert("users", customer_id, fields)
    else:
        logger.warning(f"{ctx.notification.event}: no customer_id, user record not updated")


async def handle_authenticated(ctx: HandlerContext) -> DispatchResult:
    """Mandate (e.g. UPI autopay) set up; first charge is scheduled."""
    sub = ctx.subscription
    next_charge = from_unix(sub.get("charge_at"))
    logger.info(f"Subscription authenticated: {sub['id']} (customer {sub.get('customer_id')}, plan {sub.get('plan_id')})")

    await ctx.store.upsert("subscriptions", sub["id"], {
        "status": "authenticated",
        "plan_id": sub.get("plan_id"),
        "customer_id": sub.get("customer_id"),
        "authenticated_at": ctx.now,
        "charge_at": next_charge,
    })

    ctx.notify("subscription_authenticated", {
        "customer_id": sub.get("customer_id"),
        "plan_name": plan_name(sub.get("plan_id")),
        "next_charge_date": next_charge,
    })

    return DispatchResult(
        status="success",
        message="Subscription authenticated successfully",
        subscription_id=sub["id"],
        next_charge=next_charge,
    )


async def handle_activated(ctx: HandlerContext) -> DispatchResult:
    """First payment succeeded: grant access and record the billing period."""
    sub = ctx.subscription
    period_start = from_unix(sub.get("current_start"))
    period_end = from_unix(sub.get("current_end"))
    logger.info(f"Subscription activated: {sub['id']} ({period_start} to {period_end})")

    await _update_user(ctx, sub.get("customer_id"), {
        "subscription_status": "active",
        "plan_id": sub.get("plan_id"),
        "access_granted_at": ctx.now,
        "subscription_id": sub["id"],
    })
    await ctx.store.upsert("subscriptions", sub["id"], {
        "status": "active",
        "activated_at": ctx.now,
        "current_period_start": period_start,
        "current_period_end": period_end,
    })

    ctx.notify("subscription_activated", {
        "customer_id": sub.get("customer_id"),
        "plan_name": plan_name(sub.get("plan_id")),
        "access_url": ctx.url("/dashboard"),
        "templates_count": templates_count(sub.get("plan_id")),
    })

    return DispatchResult(
        status="success",
        message="Subscription activated and access granted",
        subscription_id=sub["id"],
        plan_id=sub.get("plan_id"),
        period_end=period_end,
    )


async def handle_charged(ctx: HandlerContext) -> DispatchResult:
    """Recurring payment captured. Each payment id is recorded at most once."""
    sub = ctx.subscription
    payment = ctx.payment
    amount_minor = payment.get("amount", 0)
    amount = amount_minor / 100  # Minor units (paise) to major units
    next_charge = from_unix(sub.get("charge_at"))
    logger.info(f"Subscription charged: payment {payment['id']} on {sub['id']}, amount {amount}, next charge {next_charge}")

    inserted = await ctx.store.insert_once("payments", payment["id"], {
        "subscription_id": sub["id"],
        "amount": amount,
        "currency": payment.get("currency"),
        "method": payment.get("method"),
        "status": payment.get("status"),
        "paid_at": from_unix(payment.get("created_at")),
        "description": f"Recurring payment for {plan_name(sub.get('plan_id'))}",
    })

    if inserted:
        await ctx.store.upsert("subscriptions", sub["id"], {
            "last_payment_id": payment["id"],
            "last_charged_at": ctx.now,
            "current_period_start": from_unix(sub.get("current_start")),
            "current_period_end": from_unix(sub.get("current_end")),
            "next_charge_at": next_charge,
        })
        ctx.notify("payment_success", {
            "customer_id": sub.get("customer_id"),
            "amount": f"₹{Decimal(str(amount_minor)) / 100}",
            "payment_id": payment["id"],
            "plan_name": plan_name(sub.get("plan_id")),
            "next_billing_date": next_charge,
            "invoice_url": ctx.url(f"/invoice/{payment['id']}"),
        })
    else:
        logger.info(f"Payment {payment['id']} already recorded, skipping")

    return DispatchResult(
        status="success",
        message="Payment recorded successfully" if inserted else "Payment already recorded",
        subscription_id=sub["id"],
        payment_id=payment["id"],
        amount=amount,
        next_charge=next_charge,
        duplicate=not inserted,
    )


async def handle_paused(ctx: HandlerContext) -> DispatchResult:
    """Suspend access but keep the customer's data."""
    sub = ctx.subscription
    logger.info(f"Subscription paused: {sub['id']}")

    await ctx.store.upsert("subscriptions", sub["id"], {
        "status": "paused",
        "paused_at": ctx.now,
        "pause_reason": "user_requested",
    })
    await _update_user(ctx, sub.get("customer_id"), {
        "subscription_status": "paused",
        "access_suspended_at": ctx.now,
    })

    ctx.notify("subscription_paused", {
        "customer_id": sub.get("customer_id"),
        "resume_url": ctx.url("/subscription/manage"),
        "support_email": ctx.support_email,
    })

    return DispatchResult(
        status="success",
        message="Subscription paused successfully",
        subscription_id=sub["id"],
    )


async def handle_resumed(ctx: HandlerContext) -> DispatchResult:
    sub = ctx.subscription
    next_charge = from_unix(sub.get("charge_at"))
    logger.info(f"Subscription resumed: {sub['id']}")

    await ctx.store.upsert("subscriptions", sub["id"], {
        "status": "active",
        "resumed_at": ctx.now,
        "paused_at": None,
    })
    await _update_user(ctx, sub.get("customer_id"), {
        "subscription_status": "active",
        "access_suspended_at": None,
    })

    ctx.notify("subscription_resumed", {
        "customer_id": sub.get("customer_id"),
        "access_url": ctx.url("/dashboard"),
        "next_billing_date": next_charge,
    })

    return DispatchResult(
        status="success",
        message="Subscription resumed successfully",
        subscription_id=sub["id"],
        next_charge=next_charge,
    )


async def handle_pending(ctx: HandlerContext) -> DispatchResult:
    """A charge failed and the provider scheduled a retry."""
    sub = ctx.subscription
    next_retry = from_unix(sub.get("charge_at"))
    remaining = sub.get("remaining_count")
    logger.info(f"Subscription pending, payment retry: {sub['id']} (next retry {next_retry})")

    await ctx.store.upsert("subscriptions", sub["id"], {
        "status": "pending",
        "retry_count": remaining,
        "next_retry_at": next_retry,
    })

    ctx.notify("payment_retry", {
        "customer_id": sub.get("customer_id"),
        "next_retry_date": next_retry,
        "manage_url": ctx.url("/subscription/manage"),
        "remaining_attempts": remaining,
    })

    return DispatchResult(
        status="success",
        message="Subscription marked as pending",
        subscription_id=sub["id"],
        next_retry=next_retry,
        remaining_attempts=remaining,
    )


async def handle_halted(ctx: HandlerContext) -> DispatchResult:
    """Retries exhausted: suspend access and start the grace period."""
    sub = ctx.subscription
    grace_period_ends = ctx.now + timedelta(days=ctx.grace_period_days)
    logger.warning(f"Subscription halted, payment failed: {sub['id']} (grace period until {grace_period_ends})")

    await ctx.store.upsert("subscriptions", sub["id"], {
        "status": "halted",
        "halted_at": ctx.now,
        "grace_period_ends": grace_period_ends,
    })
    await _update_user(ctx, sub.get("customer_id"), {
        "subscription_status": "halted",
        "access_suspended_at": ctx.now,
        "grace_period_ends": grace_period_ends,
    })

    ctx.notify("subscription_halted", {
        "customer_id": sub.get("customer_id"),
        "grace_period_days": ctx.grace_period_days,
        "reactivate_url": ctx.url("/subscription/reactivate"),
        "support_email": ctx.support_email,
    })

    return DispatchResult(
        status="success",
        message="Subscription halted, grace period started",
        subscription_id=sub["id"],
        grace_period_days=ctx.grace_period_days,
        grace_period_ends=grace_period_ends,
    )


async def handle_cancelled(ctx: HandlerContext) -> DispatchResult:
    """Access stays until the end of the paid period (``end_at``)."""
    sub = ctx.subscription
    access_until = from_unix(sub.get("end_at"))
    logger.info(f"Subscription cancelled: {sub['id']} (access ends {access_until})")

    await ctx.store.upsert("subscriptions", sub["id"], {
        "status": "cancelled",
        "cancelled_at": ctx.now,
        "access_ends": access_until,
        "cancellation_reason": "user_requested",
    })
    await _update_user(ctx, sub.get("customer_id"), {
        "subscription_status": "cancelled",
        "access_ends": access_until,
    })

    ctx.notify("subscription_cancelled", {
        "customer_id": sub.get("customer_id"),
        "access_until": access_until,
        "resubscribe_url": ctx.url("/pricing"),
        "feedback_url": ctx.url("/feedback"),
        "export_data_url": ctx.url("/export"),
    })

    return DispatchResult(
        status="success",
        message="Subscription cancelled successfully",
        subscription_id=sub["id"],
        access_until=access_until,
    )


async def handle_completed(ctx: HandlerContext) -> DispatchResult:
    sub = ctx.subscription
    total_payments = sub.get("paid_count")
    logger.info(f"Subscription completed: {sub['id']} ({total_payments} payments)")

    await ctx.store.upsert("subscriptions", sub["id"], {
        "status": "completed",
        "completed_at": ctx.now,
        "total_payments": total_payments,
    })

    ctx.notify("subscription_completed", {
        "customer_id": sub.get("customer_id"),
        "total_payments": total_payments,
        "renewal_url": ctx.url("/pricing"),
    })

    return DispatchResult(
        status="success",
        message="Subscription completed successfully",
        subscription_id=sub["id"],
        total_payments=total_payments,
    )


async def handle_updated(ctx: HandlerContext) -> DispatchResult:
    """Plan or quantity changed; the billing period is recomputed by the provider."""
    sub = ctx.subscription
    period_start = from_unix(sub.get("current_start"))
    logger.info(f"Subscription updated: {sub['id']} (plan {sub.get('plan_id')}, quantity {sub.get('quantity')})")

    await ctx.store.upsert("subscriptions", sub["id"], {
        "plan_id": sub.get("plan_id"),
        "quantity": sub.get("quantity"),
        "updated_at": ctx.now,
        "current_period_start": period_start,
        "current_period_end": from_unix(sub.get("current_end")),
    })

    ctx.notify("subscription_updated", {
        "customer_id": sub.get("customer_id"),
        "new_plan_name": plan_name(sub.get("plan_id")),
        "effective_date": period_start,
        "manage_url": ctx.url("/subscription/manage"),
    })

    return DispatchResult(
        status="success",
        message="Subscription updated successfully",
        subscription_id=sub["id"],
        new_plan=sub.get("plan_id"),
        quantity=sub.get("quantity"),
    )


HANDLERS: dict[SubscriptionEvent, Handler] = {
    SubscriptionEvent.AUTHENTICATED: handle_authenticated,
    SubscriptionEvent.ACTIVATED: handle_activated,
    SubscriptionEvent.CHARGED: handle_charged,
    SubscriptionEvent.PAUSED: handle_paused,
    SubscriptionEvent.RESUMED: handle_resumed,
    SubscriptionEvent.PENDING: handle_pending,
    SubscriptionEvent.HALTED: handle_halted,
    SubscriptionEvent.CANCELLED: handle_cancelled,
    SubscriptionEvent.COMPLETED: handle_completed,
    SubscriptionEvent.UPDATED: handle_updated,
}

_missing = set(SubscriptionEvent) - set(HANDLERS)
if _missing:
    raise RuntimeError(f"No handler registered for: {sorted(e.value for e in _missing)}")
