from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Sequence

from callnotes.models import CallNote, Contact, Order, Reminder, utcnow

TOP_N = 5


@dataclass
class ContactActivity:
    contact: Contact
    notes: int
    orders: int

    @property
    def total(self) -> int:
        return self.notes + self.orders


@dataclass
class DayActivity:
    day: str
    notes: int
    orders: int

    @property
    def total(self) -> int:
        return self.notes + self.orders


@dataclass
class Analytics:
    totals: dict[str, int]
    recent: dict[str, int]
    notes_growth: int
    orders_growth: int
    top_contacts: list[ContactActivity] = field(default_factory=list)
    top_tags: list[tuple[str, int]] = field(default_factory=list)
    weekly_activity: list[DayActivity] = field(default_factory=list)


def week_over_week(this_week: int, last_week: int) -> int:
    """Percent change against the previous seven days; a quiet last week counts as one."""
    if this_week == 0 and last_week == 0:
        return 0
    return round((this_week - last_week) / max(last_week, 1) * 100)


def _count_between(dates: list[datetime], start: datetime, end: datetime | None = None) -> int:
    return sum(1 for d in dates if d >= start and (end is None or d < end))


def compute_analytics(
    contacts: Sequence[Contact],
    notes: Sequence[CallNote],
    orders: Sequence[Order],
    reminders: Sequence[Reminder],
    now: datetime | None = None,
) -> Analytics:
    now = now or utcnow()
    month_ago = now - timedelta(days=30)
    week_ago = now - timedelta(days=7)
    two_weeks_ago = now - timedelta(days=14)

    note_dates = [n.created_at for n in notes]
    order_dates = [o.created_at for o in orders]
    reminder_dates = [r.created_at for r in reminders]

    activity = [
        ContactActivity(
            contact=c,
            notes=sum(1 for n in notes if n.contact_id == c.id),
            orders=sum(1 for o in orders if o.contact_id == c.id),
        )
        for c in contacts
    ]
    activity.sort(key=lambda a: a.total, reverse=True)

    tags = Counter(tag for n in notes for tag in n.tags)

    weekly = []
    local_now = now.astimezone()
    for days_back in range(6, -1, -1):
        day = (local_now - timedelta(days=days_back)).date()
        weekly.append(
            DayActivity(
                day=f"{day:%a}",
                notes=sum(1 for d in note_dates if d.astimezone().date() == day),
                orders=sum(1 for d in order_dates if d.astimezone().date() == day),
            )
        )

    return Analytics(
        totals={
            "contacts": len(contacts),
            "notes": len(notes),
            "orders": len(orders),
            "reminders": len(reminders),
        },
        recent={
            "notes": _count_between(note_dates, month_ago),
            "orders": _count_between(order_dates, month_ago),
            "reminders": _count_between(reminder_dates, month_ago),
        },
        notes_growth=week_over_week(
            _count_between(note_dates, week_ago),
            _count_between(note_dates, two_weeks_ago, week_ago),
        ),
        orders_growth=week_over_week(
            _count_between(order_dates, week_ago),
            _count_between(order_dates, two_weeks_ago, week_ago),
        ),
        top_contacts=activity[:TOP_N],
        top_tags=tags.most_common(TOP_N),
        weekly_activity=weekly,
    )
