"""Change notification for ledger writes.

Delivery to clients (push, WebSocket) lives outside the core; it subscribes a
callable here and receives a ChangeEvent after each committed write.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable

from haulbook.domain.entities import AccountType

logger = logging.getLogger(__name__)


class ChangeType(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    FUSED = "fused"
    REVERTED = "reverted"


@dataclass(frozen=True)
class ChangeEvent:
    type: ChangeType
    affected_account_types: tuple[AccountType, ...]
    affected_account_ids: tuple[int, ...]


Subscriber = Callable[[ChangeEvent], None]


class ChangeNotifier:
    """Fan-out of change events to plain-callable subscribers."""

    def __init__(self, subscribers: Iterable[Subscriber] = ()):
        self._subscribers: list[Subscriber] = list(subscribers)

    def subscribe(self, subscriber: Subscriber) -> None:
        self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)

    def publish(self, event: ChangeEvent) -> None:
        """Deliver an event to every subscriber.

        The write that produced the event is already committed, so a failing
        subscriber is logged and the remaining subscribers still run.
        """
        logger.debug(
            "Publishing %s event for accounts %s", event.type.value, list(event.affected_account_ids)
        )
        for subscriber in list(self._subscribers):
            try:
                subscriber(event)
            except Exception:
                logger.exception("Change subscriber %r failed on %s event", subscriber, event.type.value)

    def notify(
        self,
        change_type: ChangeType,
        accounts: Iterable[tuple[AccountType, int]],
    ) -> ChangeEvent:
        """Build and publish an event from (account type, account id) pairs."""
        pairs = list(dict.fromkeys(accounts))
        event = ChangeEvent(
            type=change_type,
            affected_account_types=tuple(dict.fromkeys(account_type for account_type, _ in pairs)),
            affected_account_ids=tuple(account_id for _, account_id in pairs),
        )
        self.publish(event)
        return event
