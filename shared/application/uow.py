"""
Unit of Work

Wraps a block of booking or ledger writes in ``transaction.atomic`` and
holds back the domain events raised inside it until the outermost
transaction commits. A rolled back block publishes nothing.
"""

from typing import List
import logging

from django.db import transaction

from shared.domain.base import DomainEvent

logger = logging.getLogger(__name__)


class DjangoUnitOfWork:
    """
    Usage:
        with DjangoUnitOfWork() as uow:
            booking = load_for_update(booking_id)
            booking.transition(Booking.Status.SELECTED, actor=user)
            booking.save()
            uow.collect_events(booking)

    Nested units become savepoints of the outer transaction; their events
    are queued with ``on_commit`` and so fire with the outer commit.
    """

    def __init__(self):
        self._events: List[DomainEvent] = []
        self._atomic = transaction.atomic()

    def __enter__(self):
        self._atomic.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type is None:
                self.commit()
            else:
                self.rollback()
        finally:
            self._atomic.__exit__(exc_type, exc_val, exc_tb)

    def commit(self):
        events, self._events = self._events, []
        if events:
            logger.debug(f"Deferring {len(events)} events until commit")
            transaction.on_commit(lambda: self._publish(events))

    def rollback(self):
        if self._events:
            logger.warning(f"Discarding {len(self._events)} events after rollback")
        self._events = []

    def collect_events(self, source):
        """Take ownership of the events buffered on an aggregate."""
        pending = getattr(source, 'events', None)
        if not pending:
            return
        self._events.extend(pending)
        source.clear_events()
        logger.debug(f"Collected {len(pending)} events from {type(source).__name__} #{getattr(source, 'pk', None)}")

    @staticmethod
    def _publish(events: List[DomainEvent]):
        from shared.application.message_bus import message_bus

        # The rows are already committed; a failed publish is only logged.
        try:
            message_bus.publish_events(events)
        except Exception as exc:
            logger.error(f"Publishing {len(events)} events failed: {exc}", exc_info=True)
