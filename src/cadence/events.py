"""In-process broadcast channel.

Listeners are plain callables or coroutine functions registered per event
name. ``emit`` calls them one after another in subscription order and
awaits any awaitable they return, so the broadcast settles only once every
listener has finished. A failing listener is logged and skipped; it never
stops delivery to the others and never propagates to the emitter.
"""

import inspect
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class Subscription:
    """Handle returned by EventChannel.on(); release() detaches the listener."""

    def __init__(self, channel: "EventChannel", event: str, listener: Listener):
        self._channel = channel
        self.event = event
        self.listener = listener
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def release(self) -> bool:
        """Detach the listener. Safe to call more than once.

        Returns:
            True if this call detached the listener, False if it was
            already released.
        """
        if not self._active:
            return False
        self._active = False
        self._channel._remove(self)
        return True

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "active" if self._active else "released"
        return f"<Subscription {self.event!r} {self.listener!r} ({state})>"


class EventChannel:
    """Named-event broadcast with awaited, failure-isolated delivery.

    Example:
        channel = EventChannel()

        @channel.listener("tick")
        async def on_tick(at):
            ...

        await channel.emit("tick", now)
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[Subscription]] = {}

    def on(self, event: str, listener: Listener) -> Subscription:
        """Register a listener and return its subscription handle."""
        subscription = Subscription(self, event, listener)
        self._subscriptions.setdefault(event, []).append(subscription)
        return subscription

    def listener(self, event: str) -> Callable[[Listener], Listener]:
        """Decorator form of on()."""

        def decorator(fn: Listener) -> Listener:
            self.on(event, fn)
            return fn

        return decorator

    def listener_count(self, event: str) -> int:
        return len(self._subscriptions.get(event, []))

    def _remove(self, subscription: Subscription) -> None:
        subscriptions = self._subscriptions.get(subscription.event)
        if subscriptions and subscription in subscriptions:
            subscriptions.remove(subscription)
            if not subscriptions:
                del self._subscriptions[subscription.event]

    async def emit(self, event: str, *args: Any) -> int:
        """Deliver an event to every listener, awaiting each in turn.

        Listeners released while the broadcast is in progress are not
        called.

        Returns:
            Number of listeners that raised.
        """
        failures = 0
        for subscription in list(self._subscriptions.get(event, [])):
            if not subscription.active:
                continue
            try:
                result = subscription.listener(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                failures += 1
                logger.error(
                    "event_listener_failed",
                    extra={
                        "event.name": event,
                        "event.listener": repr(subscription.listener),
                        "error.message": str(e),
                    },
                    exc_info=True,
                )
        return failures
