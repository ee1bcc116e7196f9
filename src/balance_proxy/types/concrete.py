from collections.abc import Callable
from typing import Protocol
from weakref import WeakSet

from eth_typing import ChecksumAddress


class AbstractPublisherMessage:
    """
    A message sent by a `Publisher` to a `Subscriber`.
    """


class TextMessage(AbstractPublisherMessage):
    """
    A generic text message.
    """

    def __init__(self, text: str) -> None:
        self.text = text

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TextMessage):
            return NotImplemented
        return self.text == other.text

    def __hash__(self) -> int:
        return hash(self.text)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(text={self.text})"

    def __str__(self) -> str:
        return self.text


class RewriteWarning(TextMessage):
    """
    A router command could not be rewritten, or was rewritten only partially. The transaction will
    still be attempted, so the host should surface this to the user.
    """

    def __init__(self, text: str, command_index: int | None = None) -> None:
        super().__init__(text)
        self.command_index = command_index

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(text={self.text}, command_index={self.command_index})"


class SimulationAttemptFailed(AbstractPublisherMessage):
    """
    A single simulation attempt failed and may be retried.
    """

    def __init__(self, phase: str, attempt: int, reason: str) -> None:
        self.phase = phase
        self.attempt = attempt
        self.reason = reason

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(phase={self.phase}, attempt={self.attempt}, "
            f"reason={self.reason})"
        )


class FundingStepMessage(AbstractPublisherMessage):
    """
    A funding step (allowance check, permit signature, approval transaction) has completed.
    """

    def __init__(self, step: str, token: ChecksumAddress, detail: str = "") -> None:
        self.step = step
        self.token = token
        self.detail = detail

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(step={self.step}, token={self.token}, "
            f"detail={self.detail})"
        )


class Publisher(Protocol):
    """
    Can send a `Message` to a `Subscriber`
    """

    _subscribers: WeakSet["Subscriber"]

    def subscribe(self, subscriber: "Subscriber") -> None:
        """
        Subscribe to receive messages from this `Publisher`
        """

    def unsubscribe(self, subscriber: "Subscriber") -> None:
        """
        Stop receiving messages from this `Publisher`
        """


class PublisherMixin:
    """
    A set of default methods to accept subscribe & unsubscribe requests, and to deliver messages.
    Classes using this mixin meet the `Publisher` protocol requirements.
    """

    def subscribe(self: Publisher, subscriber: "Subscriber") -> None:
        self._subscribers.add(subscriber)

    def unsubscribe(self: Publisher, subscriber: "Subscriber") -> None:
        self._subscribers.discard(subscriber)

    def _notify_subscribers(self: Publisher, message: AbstractPublisherMessage) -> None:
        for subscriber in self._subscribers.copy():
            subscriber.notify(publisher=self, message=message)


class Subscriber(Protocol):
    """
    Can subscribe to messages from a `Publisher`
    """

    def notify(self, publisher: "Publisher", message: AbstractPublisherMessage) -> None:
        """
        Deliver `message` to `Subscriber`
        """


class CallbackSubscriber:
    """
    A `Subscriber` that forwards every message to a callable. Hold a reference to it for as long
    as messages should be delivered, since publishers keep only weak references.
    """

    def __init__(self, callback: Callable[[AbstractPublisherMessage], None]) -> None:
        self.callback = callback

    def notify(self, publisher: Publisher, message: AbstractPublisherMessage) -> None:  # noqa: ARG002
        self.callback(message)
