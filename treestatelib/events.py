"""
Event notification for tree instances.

Each Tree owns one EventNotifier. Listeners subscribe by event name or by
an ``fnmatch`` pattern (``"node.*"``), and every emission checks the mute
state before anything is dispatched.
"""

import asyncio
import logging
from fnmatch import fnmatchcase
from typing import Any, Callable, Iterable, List, Optional, Tuple, Union

from .error_policies import ContinueOnErrorsPolicy, ErrorPolicy


logger = logging.getLogger(__name__)

Listener = Callable[..., Any]
MuteState = Union[bool, List[str]]


class _Subscription:
    """A listener bound to an event pattern."""

    __slots__ = ('pattern', 'listener', 'once')

    def __init__(self, pattern: str, listener: Listener, once: bool = False):
        self.pattern = pattern
        self.listener = listener
        self.once = once

    def matches(self, event: str) -> bool:
        return self.pattern == event or fnmatchcase(event, self.pattern)


class EventNotifier:
    """
    Publish/subscribe hub with mute support and deferred delivery.

    Listener exceptions are routed through an ErrorPolicy. The default
    policy logs and records them so a failing listener never interrupts
    the tree mutation that triggered the event.
    """

    def __init__(self, error_policy: Optional[ErrorPolicy] = None):
        self._subscriptions: List[_Subscription] = []
        self._muted: MuteState = False
        self._pending: List[Tuple[str, tuple]] = []
        self.error_policy = error_policy or ContinueOnErrorsPolicy()

    # Subscription

    def on(self, event: str, listener: Optional[Listener] = None):
        """
        Subscribe to an event name or pattern.

        Can be used as a decorator when ``listener`` is omitted.

        Args:
            event: Event name or fnmatch pattern
            listener: Callable receiving the event's payload arguments

        Returns:
            The listener (or a decorator when no listener was given)
        """
        if listener is None:
            def decorator(func: Listener) -> Listener:
                self.on(event, func)
                return func
            return decorator

        subscription = _Subscription(event, listener)
        self._subscriptions.append(subscription)
        self._replay_pending(subscription)
        return listener

    def once(self, event: str, listener: Listener) -> Listener:
        """Subscribe for a single delivery."""
        subscription = _Subscription(event, listener, once=True)
        self._subscriptions.append(subscription)
        self._replay_pending(subscription)
        return listener

    def on_any(self, listener: Listener) -> Listener:
        """Subscribe to every event. The listener receives the event name first."""
        subscription = _Subscription('*', _AnyListener(listener))
        self._subscriptions.append(subscription)
        self._replay_pending(subscription)
        return listener

    def off(self, event: Optional[str] = None, listener: Optional[Listener] = None) -> int:
        """
        Remove subscriptions.

        Args:
            event: Pattern the listener was registered with (None for any)
            listener: Listener to remove (None for all on ``event``)

        Returns:
            Number of subscriptions removed
        """
        kept = []
        removed = 0
        for subscription in self._subscriptions:
            same_event = event is None or subscription.pattern == event
            same_listener = listener is None or _unwrap(subscription.listener) is listener
            if same_event and same_listener:
                removed += 1
            else:
                kept.append(subscription)
        self._subscriptions = kept
        return removed

    def listeners(self, event: str) -> List[Listener]:
        """Listeners that would receive ``event``."""
        return [_unwrap(s.listener) for s in self._subscriptions if s.matches(event)]

    # Emission

    def emit(self, event: str, *args) -> bool:
        """
        Emit an event unless it is muted.

        Returns:
            True if at least one listener was called
        """
        if self.is_muted(event):
            return False

        matched = [s for s in self._subscriptions if s.matches(event)]
        if not matched:
            return False

        for subscription in matched:
            if subscription.once:
                try:
                    self._subscriptions.remove(subscription)
                except ValueError:
                    # Already consumed by a re-entrant emission
                    continue
            self._call(subscription.listener, event, args)

        return True

    def defer(self, event: str, *args) -> None:
        """
        Emit on the next scheduling tick.

        With a running asyncio loop the emission is scheduled with
        ``call_soon``. Without one it is held and replayed to listeners
        that subscribe to it before ``clear_pending()`` runs.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop, holding %s for late listeners", event)
            self._pending.append((event, args))
            return

        loop.call_soon(self.emit, event, *args)

    def clear_pending(self) -> None:
        """Drop held emissions."""
        self._pending.clear()

    @property
    def pending(self) -> List[str]:
        return [event for event, _ in self._pending]

    def _replay_pending(self, subscription: _Subscription) -> None:
        for event, args in list(self._pending):
            if not subscription.matches(event) or self.is_muted(event):
                continue
            if subscription.once:
                if subscription not in self._subscriptions:
                    break
                self._subscriptions.remove(subscription)
            self._call(subscription.listener, event, args)

    def _call(self, listener: Listener, event: str, args: tuple) -> None:
        try:
            if isinstance(listener, _AnyListener):
                listener(event, *args)
            else:
                listener(*args)
        except Exception as error:
            self.error_policy.handle(error, event, _unwrap(listener))

    # Muting

    def mute(self, events: Optional[Union[str, Iterable[str]]] = None) -> None:
        """
        Suppress events.

        Args:
            events: Name, pattern or list of them. None mutes everything.
                A list replaces any previously muted names.
        """
        if events is None:
            self._muted = True
        elif isinstance(events, str):
            self._muted = [events]
        else:
            self._muted = list(events)

    def unmute(self, events: Optional[Union[str, Iterable[str]]] = None) -> None:
        """
        Stop suppressing events.

        Unmuting any name while everything is muted unmutes everything.
        Once no names remain the notifier reverts to not muted.
        """
        if events is None or self._muted is True:
            self._muted = False
            return
        if self._muted is False:
            return

        names = [events] if isinstance(events, str) else list(events)
        remaining = [name for name in self._muted if name not in names]
        self._muted = remaining if remaining else False

    def muted(self) -> MuteState:
        """False, True, or the list of muted names."""
        if isinstance(self._muted, list):
            return list(self._muted)
        return self._muted

    def is_muted(self, event: str) -> bool:
        if self._muted is True:
            return True
        if not self._muted:
            return False
        return any(name == event or fnmatchcase(event, name) for name in self._muted)


class _AnyListener:
    """Marks a catch-all listener that also receives the event name."""

    __slots__ = ('listener',)

    def __init__(self, listener: Listener):
        self.listener = listener

    def __call__(self, *args):
        return self.listener(*args)


def _unwrap(listener: Any) -> Listener:
    if isinstance(listener, _AnyListener):
        return listener.listener
    return listener
