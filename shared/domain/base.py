"""
Domain building blocks shared by the booking and payment apps.

``ValueObject`` marks immutable, value-compared types (money, intervals,
slots). ``EventSource`` lets a Django model buffer the events raised by its
transitions until a unit of work collects them. ``DomainEvent`` is the
base record every booking/payment event extends.
"""

from abc import ABC
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import List
from uuid import UUID, uuid4

_SCALARS = (int, str, bool, type(None))


@dataclass(frozen=True)
class ValueObject(ABC):
    """Frozen dataclass base; equality is structural."""


class EventSource:
    # Stored in __dict__ directly: Django builds model instances without
    # calling a mixin __init__.
    def _buffer(self) -> List['DomainEvent']:
        return self.__dict__.setdefault('_domain_events', [])

    def add_event(self, event: 'DomainEvent'):
        self._buffer().append(event)

    def clear_events(self):
        self._buffer().clear()

    @property
    def events(self) -> List['DomainEvent']:
        return list(self._buffer())


@dataclass
class DomainEvent:
    """
    Something that happened to an aggregate.

    ``to_dict`` flattens the event into JSON-safe primitives so it can be
    handed to a Celery task; non-scalar fields (Decimal, datetime, UUID) are
    stringified.
    """
    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=datetime.now)
    aggregate_id: int | None = None

    def to_dict(self) -> dict:
        payload = {
            'event_id': str(self.event_id),
            'event_type': type(self).__name__,
            'occurred_at': self.occurred_at.isoformat(),
            'aggregate_id': self.aggregate_id,
        }
        for item in fields(self):
            if item.name in payload:
                continue
            value = getattr(self, item.name)
            payload[item.name] = value if isinstance(value, _SCALARS) else str(value)
        return payload
