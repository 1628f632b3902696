"""
EventProxy
----------

In-process event coordination for callback-style Python code.

Features:

- `bind()`/`on()`, `headbind()`, `once()`, `unbind()` and `trigger()`/`emit()` on
  an isolated `EventProxy` instance; a `@proxy.receiver(event)` decorator.
- `all(*events, callback)`: wait for several events, get their payloads in order.
- `tail(*events, callback)`: same, and keep calling back on later updates.
- `after(event, n, callback)` + `group(event)`: collect N asynchronous results,
  in dispatch order whatever order they complete in.
- `any(*events, callback)`, `not_(event, callback)`.
- `done()`/`fail()`: adapt `callback(err, *results)` style callbacks and route
  errors to a single fail-fast handler.
- `trigger_later()`/`done_later()` defer to the running asyncio loop.
- Single-threaded, no dependencies.
"""

from .event_proxy import ERROR_EVENT, AnyEvent, EventProxy, GroupResult
from .registry import ALL_EVENTS, Channel, Registry

create = EventProxy.create

__all__ = [
    "EventProxy",
    "create",
    "AnyEvent",
    "GroupResult",
    "ERROR_EVENT",
    "ALL_EVENTS",
    "Channel",
    "Registry",
]
