from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, ClassVar

from dateutil.parser import isoparse

logger = logging.getLogger(__name__)

NOTE_STATUSES = ("follow-up", "waiting-reply", "closed", "other")
PRIORITIES = ("low", "medium", "high")
CALL_DIRECTIONS = ("inbound", "outbound")
ORDER_STATUSES = ("pending", "confirmed", "shipped", "delivered", "cancelled")
FOLDER_TYPES = ("general", "sales-run")

_STATUS_LABELS = {
    "follow-up": "Follow-up",
    "waiting-reply": "Waiting Reply",
    "closed": "Closed",
    "other": "Other",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_date(value: Any) -> datetime | None:
    """Hydrate a stored date. Naive values are taken as local time.

    Numbers are epoch milliseconds. Anything that does not resolve to a
    representable datetime gives None.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            logger.warning("Stored timestamp %r out of range, using default", value)
            return None
    elif isinstance(value, str) and value.strip():
        try:
            parsed = isoparse(value.strip())
        except (OverflowError, ValueError):
            logger.warning("Unparseable stored date %r, using default", value)
            return None
    else:
        return None
    if parsed.tzinfo is None:
        try:
            parsed = parsed.astimezone()
        except (OverflowError, OSError, ValueError):
            logger.warning("Stored date %r cannot be placed in local time, using default", value)
            return None
    return parsed


def format_date(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.astimezone()
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


_SCALARS: dict[str, type] = {"str": str, "bool": bool, "int": int, "float": float}
_INVALID = object()


def _declared(annotation: Any) -> str:
    return annotation if isinstance(annotation, str) else getattr(annotation, "__name__", "")


def _scalar_type(annotation: Any) -> type | None:
    """The scalar type named by a field annotation such as ``str | None``, if any."""
    for part in _declared(annotation).split("|"):
        found = _SCALARS.get(part.strip())
        if found is not None:
            return found
    return None


def _item_type(annotation: Any) -> type | None:
    declared = _declared(annotation).replace(" ", "")
    if declared.startswith("list[") and declared.endswith("]"):
        return _SCALARS.get(declared[5:-1])
    return None


def _coerce(value: Any, expected: type) -> Any:
    """Return ``value`` as ``expected``, or _INVALID when it is the wrong kind."""
    if expected is bool or isinstance(value, bool):
        return value if expected is bool and isinstance(value, bool) else _INVALID
    if expected is float:
        if not isinstance(value, (int, float)):
            return _INVALID
        try:
            return float(value)
        except OverflowError:
            return _INVALID
    if expected is int:
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return value if isinstance(value, int) else _INVALID
    return value if isinstance(value, expected) else _INVALID


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def status_label(status: str, custom_status: str | None = None) -> str:
    if status == "other" and custom_status:
        return custom_status
    return _STATUS_LABELS.get(status, "Unknown")


class Record:
    """Decode-with-default codec shared by every persisted entity.

    On disk, keys are camelCase and dates are ISO strings. Missing or null
    keys fall back to the dataclass default; unknown keys are ignored. A value
    of the wrong kind (text where a flag is expected, a number in a tag list)
    is dropped the same way, so every decoded record holds well-typed fields.
    """

    _dates: ClassVar[tuple[str, ...]] = ()
    _nested: ClassVar[dict[str, type]] = {}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]):
        kwargs: dict[str, Any] = {}
        for f in fields(cls):
            value = raw.get(_camel(f.name))
            if value is None:
                continue
            if f.name in cls._dates:
                value = parse_date(value)
                if value is None:
                    continue
            elif f.default_factory is list:
                if not isinstance(value, list):
                    continue
                nested = cls._nested.get(f.name)
                item_type = _item_type(f.type)
                if nested is not None:
                    value = [nested.from_dict(v) for v in value if isinstance(v, dict)]
                elif item_type is not None:
                    value = [v for v in value if _coerce(v, item_type) is not _INVALID]
                else:
                    value = list(value)
            else:
                expected = _scalar_type(f.type)
                if expected is not None:
                    value = _coerce(value, expected)
                    if value is _INVALID:
                        logger.warning(
                            "Ignoring %s.%s of unexpected type, using default",
                            cls.__name__,
                            f.name,
                        )
                        continue
            kwargs[f.name] = value
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, datetime):
                value = format_date(value)
            elif isinstance(value, list):
                value = [v.to_dict() if isinstance(v, Record) else v for v in value]
            out[_camel(f.name)] = value
        return out


@dataclass
class Contact(Record):
    _dates: ClassVar[tuple[str, ...]] = ("created_at",)

    id: str = ""
    name: str = ""
    phone_number: str = ""
    business_card_image: str | None = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class CallNote(Record):
    _dates: ClassVar[tuple[str, ...]] = (
        "call_start_time",
        "call_end_time",
        "created_at",
        "updated_at",
    )

    id: str = ""
    contact_id: str = ""
    # Snapshot taken at creation; never re-derived from the contact.
    contact_name: str = ""
    note: str = ""
    call_start_time: datetime = field(default_factory=utcnow)
    call_end_time: datetime = field(default_factory=utcnow)
    call_duration: int = 0
    is_auto_generated: bool = False
    call_direction: str = "inbound"
    status: str = "follow-up"
    custom_status: str | None = None
    priority: str = "medium"
    tags: list[str] = field(default_factory=list)
    category: str | None = None
    folder_id: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime | None = None

    @property
    def status_label(self) -> str:
        return status_label(self.status, self.custom_status)


@dataclass
class Reminder(Record):
    _dates: ClassVar[tuple[str, ...]] = ("due_date", "created_at", "completed_at")

    id: str = ""
    contact_id: str = ""
    contact_name: str = ""
    title: str = ""
    description: str = ""
    due_date: datetime = field(default_factory=utcnow)
    is_completed: bool = False
    is_archived: bool = False
    related_note_id: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None


@dataclass
class OrderItem(Record):
    id: str = ""
    name: str = ""
    description: str | None = None
    price: float = 0.0
    quantity: int = 1


@dataclass
class Order(Record):
    _dates: ClassVar[tuple[str, ...]] = ("reminder_date", "created_at", "updated_at")
    _nested: ClassVar[dict[str, type]] = {"items": OrderItem}

    id: str = ""
    contact_id: str = ""
    contact_name: str = ""
    items: list[OrderItem] = field(default_factory=list)
    # Kept equal to sum(price * quantity) by the caller.
    total_amount: float = 0.0
    status: str = "pending"
    notes: str | None = None
    reminder_date: datetime | None = None
    reminder_time: str | None = None
    reminder_sent: bool = False
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class NoteFolder(Record):
    _dates: ClassVar[tuple[str, ...]] = ("created_at",)

    id: str = ""
    name: str = ""
    color: str = "#007AFF"
    description: str | None = None
    type: str = "general"
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Product(Record):
    id: str = ""
    name: str = ""
    price: float = 0.0
    description: str | None = None
    sku: str | None = None
    category: str | None = None
    in_stock: bool = True


@dataclass
class ProductCatalog(Record):
    _dates: ClassVar[tuple[str, ...]] = ("created_at", "updated_at")
    _nested: ClassVar[dict[str, type]] = {"products": Product}

    id: str = ""
    name: str = ""
    products: list[Product] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class NoteSettings(Record):
    show_duration: bool = True
    show_direction: bool = True
    password_protected: bool = False
    password: str | None = None


@dataclass
class PremiumSettings(Record):
    is_premium: bool = False
    show_shopify_tab: bool = False
    show_plan_run_tab: bool = False


def field_names(record_type: type) -> set[str]:
    return {f.name for f in fields(record_type)}
