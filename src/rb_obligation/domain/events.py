"""Status-transition events.

The billing core never notifies anyone itself; it hands committed
transitions to a publisher so the notification service can email/SMS.
"""

from typing import Protocol

from src.rb_obligation.domain.models import StatusTransition


class TransitionPublisherProtocol(Protocol):
    async def publish(self, transition: StatusTransition) -> None: ...
