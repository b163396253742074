from __future__ import annotations

from datetime import timedelta

from callnotes.models import Order, OrderItem, Reminder
from callnotes.reminder_views import combined_reminders, order_reminders, reminder_stats

from conftest import utc

NOW = utc(2024, 6, 10, 12)


def _order(order_id, **extra):
    return Order(
        id=order_id,
        contact_id="c1",
        contact_name="Alice",
        items=[OrderItem(id="i1", name="Widget", price=2.5, quantity=2)],
        total_amount=5.0,
        **extra,
    )


def test_order_reminders():
    orders = [
        _order("1717000000123456", reminder_date=NOW + timedelta(days=1)),
        _order("o2", reminder_date=NOW, notes="Bring samples", status="delivered"),
        _order("o3"),
        _order("o4", reminder_date=NOW, reminder_sent=True),
    ]
    first, second = order_reminders(orders)

    assert first.id == "order-1717000000123456"
    assert first.order_id == "1717000000123456"
    assert first.title == "Order #123456"
    assert first.description == "1 items - Total: 5.00"
    assert not first.is_completed
    assert first.is_order

    assert second.title == "Order #o2"
    assert second.description == "Bring samples"
    assert second.is_completed


def test_combined_reminders_sort_and_toggles():
    call_late = Reminder(id="r1", title="late", due_date=NOW + timedelta(days=3))
    call_done = Reminder(id="r2", title="done", due_date=NOW - timedelta(days=9), is_completed=True)
    archived = Reminder(id="r3", title="archived", due_date=NOW, is_archived=True)
    orders = [_order("o1", reminder_date=NOW + timedelta(days=1))]

    entries = combined_reminders([call_late, call_done, archived], orders)
    assert [e.id for e in entries] == ["order-o1", "r1", "r2"]

    assert [e.id for e in combined_reminders([call_late], orders, include_orders=False)] == ["r1"]
    assert [e.id for e in combined_reminders([call_late], orders, include_calls=False)] == ["order-o1"]


def test_reminder_stats():
    entries = [
        Reminder(id="overdue", due_date=NOW - timedelta(days=2)),
        Reminder(id="soon", due_date=NOW + timedelta(minutes=1)),
        Reminder(id="later", due_date=NOW + timedelta(days=5)),
        Reminder(id="done", due_date=NOW - timedelta(days=1), is_completed=True),
    ]
    stats = reminder_stats(entries, now=NOW)
    assert stats.pending == 3
    assert stats.completed == 1
    assert stats.overdue == 1
    assert stats.today == 1
