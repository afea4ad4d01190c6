"""Event bus for loose-coupled orchestration.

Provides a small publish/subscribe channel that lets the project store,
agent registry and workflow engine react to each other without direct
references. Handlers can be sync or async.

Usage::

    from autocrew.core.events import EventBus, Event, PURPOSE_SELECTED

    bus = EventBus(history_size=100)

    def on_purpose(event: Event) -> None:
        print(f"Purpose selected: {event.payload['purpose_id']}")

    bus.subscribe(PURPOSE_SELECTED, on_purpose)
    bus.publish(PURPOSE_SELECTED, {"purpose_id": "cli-tool"}, source="lead")

Dispatch rules:

- Subscribers for a channel run in subscription order.
- A failing handler is logged and counted; it never reaches the publisher or
  the handlers after it.
- Async handlers are scheduled on the running loop and not awaited.
- A publish issued from inside a handler is appended to history right away,
  but its dispatch is queued until the current dispatch has finished.
"""

from __future__ import annotations

import asyncio
import inspect
from collections import defaultdict, deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from functools import partial
from time import time
from typing import Any

from loguru import logger

from .exceptions import EventTimeoutError, ValidationError

# ---------------------------------------------------------------------------
# Well-known channels
# ---------------------------------------------------------------------------

SYSTEM_INIT = "system.init"
SYSTEM_ERROR = "system.error"
SYSTEM_SHUTDOWN = "system.shutdown"

PURPOSE_SELECTED = "purpose.selected"
PROJECT_REALIGN = "project.realign"
PROJECT_CREATED = "project.created"
PROJECT_UPDATED = "project.updated"

AGENT_CREATED = "agent.created"
AGENT_STARTED = "agent.started"
AGENT_COMPLETED = "agent.completed"
AGENT_FAILED = "agent.failed"
AGENT_REMOVED = "agent.removed"

PHASE_REQUIREMENTS_START = "phase.requirements.start"
PHASE_REQUIREMENTS_COMPLETE = "phase.requirements.complete"
PHASE_ARCHITECTURE_START = "phase.architecture.start"
PHASE_ARCHITECTURE_COMPLETE = "phase.architecture.complete"
PHASE_DEVELOPMENT_START = "phase.development.start"
PHASE_DEVELOPMENT_COMPLETE = "phase.development.complete"
PHASE_TESTING_START = "phase.testing.start"
PHASE_TESTING_COMPLETE = "phase.testing.complete"
PHASE_DEVOPS_START = "phase.devops.start"
PHASE_DEVOPS_COMPLETE = "phase.devops.complete"
PHASE_DOCUMENTATION_START = "phase.documentation.start"
PHASE_DOCUMENTATION_COMPLETE = "phase.documentation.complete"
PHASE_FAILED = "phase.failed"  # payload: {phase, error, role}
WORKFLOW_COMPLETED = "workflow.completed"  # payload: {project_id, workflow}

USER_MESSAGE = "user.message"
LEAD_RESPONSE = "lead.response"  # the single user-facing channel

PROGRESS_UPDATE = "progress.update"

DEFAULT_HISTORY_SIZE = 1000


def phase_start_channel(phase: str) -> str:
    """Conventional start channel for a phase name."""
    return f"phase.{phase}.start"


def phase_complete_channel(phase: str) -> str:
    """Conventional complete channel for a phase name."""
    return f"phase.{phase}.complete"


# Handler callables may be sync or return an awaitable
Handler = Callable[["Event"], Any] | Callable[["Event"], Awaitable[None]]


# ---------------------------------------------------------------------------
# Event model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Event:
    """An immutable event that flows through the bus."""

    channel: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time)
    source: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(eq=False)
class _Subscription:
    handler: Handler
    once: bool = False


def _handler_name(handler: Handler) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)


# ---------------------------------------------------------------------------
# EventBus
# ---------------------------------------------------------------------------


class EventBus:
    """Pub/sub bus with bounded history, one-shot subscriptions and waiters."""

    def __init__(self, history_size: int = DEFAULT_HISTORY_SIZE) -> None:
        if history_size < 1:
            raise ValidationError(f"history_size must be >= 1, got {history_size}")
        self._subscriptions: dict[str, list[_Subscription]] = defaultdict(list)
        self._history: deque[Event] = deque(maxlen=history_size)
        self._pending: deque[Event] = deque()
        self._dispatching = False
        self._background_tasks: set[asyncio.Future] = set()  # prevent GC of fire-and-forget tasks
        self.failure_count = 0

    @property
    def history_size(self) -> int:
        return self._history.maxlen or 0

    # -- Subscriptions -------------------------------------------------------

    def subscribe(self, channel: str, handler: Handler) -> None:
        """Register *handler* for every publish on *channel*."""
        self._subscriptions[channel].append(_Subscription(handler))

    def subscribe_once(self, channel: str, handler: Handler) -> None:
        """Register *handler* for the next publish on *channel* only."""
        self._subscriptions[channel].append(_Subscription(handler, once=True))

    def unsubscribe(self, channel: str, handler: Handler) -> bool:
        """Remove the earliest registration of *handler* on *channel*.

        Returns True if a registration was removed.
        """
        subs = self._subscriptions.get(channel)
        if not subs:
            return False
        for sub in subs:
            if sub.handler == handler:
                subs.remove(sub)
                if not subs:
                    del self._subscriptions[channel]
                return True
        return False

    def subscriber_count(self, channel: str) -> int:
        return len(self._subscriptions.get(channel, ()))

    def remove_all_subscribers(self) -> None:
        """Drop every subscription on every channel."""
        self._subscriptions.clear()

    # -- Publishing ----------------------------------------------------------

    def publish(
        self,
        channel: str,
        payload: dict[str, Any] | None = None,
        *,
        source: str = "",
        metadata: dict[str, Any] | None = None,
        timestamp: float | None = None,
    ) -> Event:
        """Record an event and dispatch it to the channel's subscribers.

        Returns the recorded Event. Never raises because of a handler.
        """
        if not channel:
            raise ValidationError("Event channel must be a non-empty string")

        event = Event(
            channel=channel,
            payload=dict(payload or {}),
            timestamp=timestamp if timestamp is not None else time(),
            source=source,
            metadata=dict(metadata or {}),
        )
        self._history.append(event)
        self._pending.append(event)

        if self._dispatching:
            logger.debug(f"Queued nested publish on {channel}")
            return event

        self._dispatching = True
        try:
            while self._pending:
                self._dispatch(self._pending.popleft())
        finally:
            self._dispatching = False
        return event

    def _dispatch(self, event: Event) -> None:
        for sub in list(self._subscriptions.get(event.channel, ())):
            live = self._subscriptions.get(event.channel)
            # Skip registrations removed by an earlier handler in this dispatch
            if not live or sub not in live:
                continue
            if sub.once:
                live.remove(sub)
                if not live:
                    del self._subscriptions[event.channel]
            self._invoke(sub.handler, event)

    def _invoke(self, handler: Handler, event: Event) -> None:
        try:
            result = handler(event)
        except Exception:
            self.failure_count += 1
            logger.exception(f"Event handler {_handler_name(handler)} failed for {event.channel}")
            return

        if inspect.isawaitable(result):
            self._schedule(result, handler, event)

    def _schedule(self, awaitable: Awaitable[Any], handler: Handler, event: Event) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"Skipping async handler {_handler_name(handler)} for {event.channel}: no running event loop")
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return

        task = asyncio.ensure_future(awaitable, loop=loop)
        self._background_tasks.add(task)
        task.add_done_callback(partial(self._on_task_done, event.channel, _handler_name(handler)))

    def _on_task_done(self, channel: str, name: str, task: asyncio.Future) -> None:
        self._background_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.failure_count += 1
            logger.opt(exception=exc).error(f"Async event handler {name} failed for {channel}")

    async def drain(self) -> None:
        """Wait until every scheduled async handler (including ones they spawn) has finished."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    # -- Waiting -------------------------------------------------------------

    async def wait_for(self, channel: str, timeout: float | None = None) -> Event:
        """Wait for the next event on *channel*.

        Args:
            channel: Channel to watch.
            timeout: Seconds to wait; None waits indefinitely.

        Raises:
            EventTimeoutError: if nothing is published on *channel* in time.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Event] = loop.create_future()

        def _resolve(event: Event) -> None:
            if not future.done():
                future.set_result(event)

        self.subscribe_once(channel, _resolve)
        try:
            return await asyncio.wait_for(future, timeout)
        except TimeoutError:
            raise EventTimeoutError(channel, timeout or 0.0) from None
        finally:
            # No-op when the handler already fired
            self.unsubscribe(channel, _resolve)

    # -- History -------------------------------------------------------------

    def history(self, channel: str | None = None) -> list[Event]:
        """Return retained events oldest-first, optionally for one channel."""
        if channel:
            return [e for e in self._history if e.channel == channel]
        return list(self._history)

    def clear_history(self) -> None:
        self._history.clear()
