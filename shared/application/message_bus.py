"""
In-process dispatch of commands and domain events.

The module-level ``message_bus`` carries booking and payment events from
the unit of work to their subscribers once a transaction has committed.
Protocol adapters build private ``MessageBus`` instances and register one
handler per typed command, so a remote method name maps onto a dataclass
and a single callable.
"""

from typing import Any, Callable, Dict, List, Type
import logging

from shared.domain.base import DomainEvent
from shared.domain.exceptions import DomainError

logger = logging.getLogger(__name__)

EventHandler = Callable[[DomainEvent], None]
CommandHandler = Callable[[Any], Any]


class MessageBus:
    """Routes a command to exactly one handler and an event to all subscribers."""

    def __init__(self):
        self._subscribers: Dict[Type[DomainEvent], List[EventHandler]] = {}
        self._handlers: Dict[Type, CommandHandler] = {}

    def register_event_handler(self, event_type: Type[DomainEvent], handler: EventHandler):
        """Subscribe ``handler`` to ``event_type``; repeated registration is ignored."""
        subscribers = self._subscribers.setdefault(event_type, [])
        if handler not in subscribers:
            subscribers.append(handler)
            logger.debug(f"{handler.__name__} subscribed to {event_type.__name__}")

    def register_command_handler(self, command_type: Type, handler: CommandHandler):
        if command_type in self._handlers:
            raise ValueError(f"{command_type.__name__} already has a handler")
        self._handlers[command_type] = handler

    def handle_command(self, command: Any) -> Any:
        """
        Run the handler registered for ``type(command)`` and return its result.

        Domain errors are business outcomes and are re-raised untouched;
        anything else is logged before it propagates.
        """
        name = type(command).__name__
        handler = self._handlers.get(type(command))
        if handler is None:
            raise ValueError(f"No handler registered for {name}")

        logger.debug(f"Dispatching {name}")
        try:
            return handler(command)
        except DomainError:
            raise
        except Exception as exc:
            logger.error(f"{name} failed: {exc}")
            raise

    def publish_events(self, events: List[DomainEvent]):
        """
        Deliver each event to its subscribers.

        A failing subscriber is logged and skipped so the remaining ones
        still receive the event.
        """
        for event in events:
            name = type(event).__name__
            subscribers = self._subscribers.get(type(event), [])
            if not subscribers:
                logger.debug(f"{name} has no subscribers")
                continue

            logger.info(f"Publishing {name} ({event.event_id})")
            for handler in subscribers:
                try:
                    handler(event)
                except Exception as exc:
                    logger.error(f"{handler.__name__} failed on {name}: {exc}", exc_info=True)


message_bus = MessageBus()
