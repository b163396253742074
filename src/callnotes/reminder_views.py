from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, NamedTuple, Sequence, Union

from callnotes.models import Order, OrderItem, Reminder, utcnow


@dataclass
class OrderReminder:
    """A reminder derived from an order's reminder date; never stored."""

    id: str
    order_id: str
    contact_id: str
    contact_name: str
    title: str
    description: str
    due_date: datetime
    is_completed: bool
    created_at: datetime
    items: list[OrderItem] = field(default_factory=list)
    total_amount: float = 0.0
    is_archived: bool = False
    is_order: bool = True


ReminderEntry = Union[Reminder, OrderReminder]


class ReminderStats(NamedTuple):
    pending: int
    completed: int
    overdue: int
    today: int


def order_reminders(orders: Iterable[Order]) -> list[OrderReminder]:
    entries = []
    for order in orders:
        if order.reminder_date is None or order.reminder_sent:
            continue
        description = order.notes or f"{len(order.items)} items - Total: {order.total_amount:.2f}"
        entries.append(
            OrderReminder(
                id=f"order-{order.id}",
                order_id=order.id,
                contact_id=order.contact_id,
                contact_name=order.contact_name,
                title=f"Order #{order.id[-6:]}",
                description=description,
                due_date=order.reminder_date,
                is_completed=order.status == "delivered",
                created_at=order.created_at,
                items=list(order.items),
                total_amount=order.total_amount,
            )
        )
    return entries


def combined_reminders(
    reminders: Iterable[Reminder],
    orders: Iterable[Order],
    include_calls: bool = True,
    include_orders: bool = True,
) -> list[ReminderEntry]:
    """Unarchived call reminders and order reminders; open ones first, soonest due first."""
    entries: list[ReminderEntry] = []
    if include_calls:
        entries.extend(r for r in reminders if not r.is_archived)
    if include_orders:
        entries.extend(order_reminders(orders))
    return sorted(entries, key=lambda e: (e.is_completed, e.due_date))


def reminder_stats(entries: Sequence[ReminderEntry], now: datetime | None = None) -> ReminderStats:
    now = now or utcnow()
    today = now.astimezone().date()
    pending = [e for e in entries if not e.is_completed]
    return ReminderStats(
        pending=len(pending),
        completed=len(entries) - len(pending),
        overdue=sum(1 for e in pending if e.due_date < now),
        today=sum(1 for e in pending if e.due_date.astimezone().date() == today),
    )
