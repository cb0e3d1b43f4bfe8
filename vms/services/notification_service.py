"""Notification sink interface and the post-commit outbox feeding it."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from vms.models import Host, NotificationEvent, Person

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Recipient:
    kind: str
    id: int
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    receive_sms: bool = True
    receive_email: bool = True

    @classmethod
    def for_person(cls, person: Person) -> "Recipient":
        return cls(
            kind=person.kind.value,
            id=person.id,
            name=person.first_name,
            phone=person.phone,
            email=person.email,
            receive_sms=person.receive_sms,
            receive_email=person.receive_email,
        )

    @classmethod
    def for_host(cls, host: Host) -> "Recipient":
        return cls(
            kind="host",
            id=host.id,
            name=host.first_name,
            phone=host.phone,
            email=host.email,
            receive_sms=host.receive_sms,
            receive_email=host.receive_email,
        )


class Dispatcher:
    """Delivery channel for admission events. Templating and transport live behind it."""

    def notify(self, recipient: Recipient, event: NotificationEvent, context: Dict[str, Any]):
        raise NotImplementedError


class LoggingDispatcher(Dispatcher):
    def notify(self, recipient, event, context):
        logger.info("--- MOCK NOTIFICATION ---")
        logger.info(f"To: {recipient.kind} {recipient.id} ({recipient.name})")
        logger.info(f"Event: {event.value}")
        logger.info(f"Context: {context}")
        logger.info("--- END MOCK NOTIFICATION ---")


class CompositeDispatcher(Dispatcher):
    def __init__(self, dispatchers: Iterable[Dispatcher]):
        self.dispatchers = list(dispatchers)

    def notify(self, recipient, event, context):
        for dispatcher in self.dispatchers:
            try:
                dispatcher.notify(recipient, event, context)
            except Exception as e:
                logger.error(
                    f"{type(dispatcher).__name__} failed for {event.value} to {recipient.kind} {recipient.id}: {e}",
                    exc_info=True,
                )


class NotificationOutbox:
    """Queues notifications on the ledger so they only leave after a commit."""

    def __init__(self, dispatcher: Dispatcher, ledger):
        self.dispatcher = dispatcher
        self.ledger = ledger

    def queue(self, recipient: Recipient, event: NotificationEvent, context: Dict[str, Any]):
        self.ledger.after_commit(lambda: self._deliver(recipient, event, dict(context)))

    def queue_for_person(self, person: Person, event: NotificationEvent, context: Dict[str, Any]):
        self.queue(Recipient.for_person(person), event, context)

    def queue_for_host(self, host: Host, event: NotificationEvent, context: Dict[str, Any]):
        self.queue(Recipient.for_host(host), event, context)

    def _deliver(self, recipient, event, context):
        try:
            self.dispatcher.notify(recipient, event, context)
        except Exception as e:
            # Delivery never fails the operation that produced the event
            logger.error(
                f"Failed to deliver {event.value} notification to {recipient.kind} {recipient.id}: {e}",
                exc_info=True,
            )
