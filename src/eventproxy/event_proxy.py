"""
Event proxy implementation.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    Dict,
    Hashable,
    Iterable,
    List,
    NamedTuple,
    Optional,
    Set,
    Tuple,
)

from . import scheduling
from .registry import ALL_EVENTS, Callback, Channel, Registry
from .scheduling import LaterFunc

logger = logging.getLogger(__name__)

ERROR_EVENT = "error"

# kinds of internal channels
GROUP = "group"
ANY = "any"

NodeCallback = Callable[..., None]


class AnyEvent(NamedTuple):
    """
    Value delivered to an `any` callback: the event that fired first and its payload.
    """

    event_name: Hashable
    data: Any


class GroupResult(NamedTuple):
    """
    Result of one `group` callback, tagged with its dispatch index.
    """

    index: int
    result: Any


@dataclass
class _GroupState:
    index: int = 0
    results: Dict[int, Any] = field(default_factory=dict)

    def next_index(self) -> int:
        index = self.index
        self.index += 1
        return index

    def ordered(self) -> List[Any]:
        """Results in dispatch order; missing indexes read as None."""
        if not self.results:
            return []
        return [self.results.get(i) for i in range(max(self.results) + 1)]


def _payload(args: Tuple[Any, ...]) -> Any:
    return args[0] if args else None


def _flatten(keys: Iterable[Any]) -> List[Hashable]:
    events: List[Hashable] = []
    for key in keys:
        if isinstance(key, list):
            events.extend(key)
        else:
            events.append(key)
    return events


class EventProxy:
    """
    An isolated event proxy: named listeners plus coordination helpers
    (`all`, `tail`, `after`/`group`, `any`, `not_`, `done`/`fail`).

    Everything runs synchronously on the caller's stack. The instance is not
    thread-safe; use one proxy per thread or event loop.
    """

    def __init__(self, schedule_later: Optional[LaterFunc] = None) -> None:
        """
        Initialize a new EventProxy instance.

        Args:
            schedule_later (Optional[LaterFunc], optional): Runs a callback on a
                later turn of the host scheduler. Used by `trigger_later` and
                `done_later`. Defaults to `call_soon` on the running asyncio loop.
        """
        self._callbacks = Registry()
        # private subscriptions of the coordination helpers
        self._watchers = Registry()
        self._fired: Dict[Hashable, Any] = {}
        self._groups: Dict[Hashable, _GroupState] = {}
        self._schedule_later: LaterFunc = schedule_later or scheduling.schedule_later

    # -------------------- registration API --------------------
    def add_listener(self, event: Hashable, callback: Callback) -> EventProxy:
        """
        Register `callback` for `event`, after the callbacks already registered.
        Registering the same callback twice makes it run twice per trigger.

        Args:
            event (Hashable): The event to register the callback for.
            callback (Callback): Called with the trigger's arguments.

        Returns:
            EventProxy: This proxy, for chaining.
        """
        logger.debug("Add listener for %r", event)
        self._callbacks.add(event, callback)
        return self

    bind = on = subscribe = add_listener

    def headbind(self, event: Hashable, callback: Callback) -> EventProxy:
        """
        Register `callback` for `event`, before the callbacks already registered.

        Args:
            event (Hashable): The event to register the callback for.
            callback (Callback): Called with the trigger's arguments.

        Returns:
            EventProxy: This proxy, for chaining.
        """
        logger.debug("Add listener for %r at head", event)
        self._callbacks.add(event, callback, at_front=True)
        return self

    def remove_listener(
        self, event: Optional[Hashable] = None, callback: Optional[Callback] = None
    ) -> int:
        """
        Unregister listeners.

        Without `event`, every listener of the proxy is removed, including the
        pending `all`/`tail`/`after` coordinators. Without `callback`, every
        listener of `event` is removed. Otherwise every registration of
        `callback` for `event` is removed.

        Args:
            event (Optional[Hashable], optional): The event to unregister
                                                  listeners for. Defaults to None.
            callback (Optional[Callback], optional): The listener to unregister.
                                                     Defaults to None.

        Returns:
            int: The number of removed listeners.
        """
        if event is None:
            logger.debug("Remove all listeners")
            return self._callbacks.remove() + self._watchers.remove()
        removed = self._callbacks.remove(event, callback)
        logger.debug("Removed %d listener(s) of %r", removed, event)
        return removed

    unbind = remove_listener

    def remove_all_listeners(self, event: Optional[Hashable] = None) -> int:
        """Remove every listener of `event`, or of the whole proxy."""
        return self.remove_listener(event)

    def bind_for_all(self, callback: Callback) -> EventProxy:
        """
        Register `callback` for every event. It is called as
        `callback(event, *args)` after the event's own listeners.
        """
        self._callbacks.add(ALL_EVENTS, callback)
        return self

    def unbind_for_all(self, callback: Optional[Callback] = None) -> int:
        return self._callbacks.remove(ALL_EVENTS, callback)

    def list_receivers(self, event: Hashable) -> List[Callback]:
        """
        Return the listeners registered for `event`, in call order.

        Args:
            event (Hashable): The event to list listeners for.

        Returns:
            List[Callback]: The registered listeners. `once` listeners are listed
                            as their self-removing wrappers.
        """
        return self._callbacks.receivers(event)

    # -------------------- decorator --------------------
    def receiver(self, event: Hashable, *, once: bool = False):
        """
        Decorator to register a function as a listener for `event`.

        Args:
            event (Hashable): The event to register the function for.
            once (bool, optional): Remove the listener after its first call.
                                   Defaults to False.

        Returns:
            Callable[[Callback], Callback]: The decorator function.

        Example:
        @proxy.receiver("ready")
        def on_ready(data):
            print("ready with", data)
        """

        def wrapper(func: Callback) -> Callback:
            if once:
                self.once(event, func)
            else:
                self.add_listener(event, func)
            return func

        return wrapper

    # -------------------- dispatch --------------------
    def trigger(self, event: Hashable, *args: Any) -> EventProxy:
        """
        Call every listener of `event` with `args`, in registration order, then
        every listener bound with `bind_for_all` with `(event, *args)`.
        Exceptions raised by listeners propagate.

        Args:
            event (Hashable): The event to dispatch.
            *args: Positional arguments passed to the listeners.

        Returns:
            EventProxy: This proxy, for chaining.

        Example:
        proxy.trigger("loaded", data)
        """
        logger.debug("Emit event %r with data %r", event, args)
        self._callbacks.dispatch(event, *args)
        self._watchers.dispatch(event, event, *args)
        if not isinstance(event, Channel):
            self._callbacks.dispatch(ALL_EVENTS, event, *args)
        return self

    emit = fire = trigger

    def trigger_later(self, event: Hashable, *args: Any) -> None:
        """
        Trigger `event` on a later turn of the scheduler, so listeners bound
        after this call in the same turn still receive it.

        Args:
            event (Hashable): The event to dispatch.
            *args: Positional arguments passed to the listeners.

        Returns:
            None
        """
        self._schedule_later(functools.partial(self.trigger, event, *args))

    emit_later = trigger_later

    def once(self, event: Hashable, callback: Callback) -> EventProxy:
        """
        Register `callback` for the next trigger of `event` only.

        Args:
            event (Hashable): The event to register the callback for.
            callback (Callback): Called with the trigger's arguments.

        Returns:
            EventProxy: This proxy, for chaining.
        """

        @functools.wraps(callback)
        def wrapper(*args: Any) -> None:
            try:
                callback(*args)
            finally:
                self.remove_listener(event, wrapper)

        return self.add_listener(event, wrapper)

    def immediate(self, event: Hashable, callback: Callback, *data: Any) -> EventProxy:
        """
        Register `callback` for `event` and trigger `event` right away with `data`.

        Args:
            event (Hashable): The event to register the callback for.
            callback (Callback): Called with the trigger's arguments.
            *data: Arguments of the immediate trigger.

        Returns:
            EventProxy: This proxy, for chaining.
        """
        self.add_listener(event, callback)
        return self.trigger(event, *data)

    asap = immediate

    # -------------------- coordination --------------------
    def _assign(self, args: Tuple[Any, ...], once: bool) -> EventProxy:
        if len(args) < 2:
            return self
        *keys, callback = args
        events = _flatten(keys)
        if not events or not callable(callback):
            return self

        logger.debug("Assign listener for events %r, once is %s", events, once)
        distinct = list(dict.fromkeys(events))
        fired: Set[Hashable] = set()
        captures: Dict[Hashable, Callback] = {}

        def capture(key: Hashable) -> Callback:
            def _capture(*data: Any) -> None:
                self._fired[key] = _payload(data)
                fired.add(key)

            return _capture

        def watch(name: Hashable, *data: Any) -> None:
            if len(fired) < len(distinct):
                return
            values = [self._fired[key] for key in events]
            if once:
                for key in distinct:
                    self._callbacks.remove(key, captures[key])
                    self._watchers.remove(key, watch)
            logger.debug("Events %r all emitted with data %r", events, values)
            callback(*values)

        for key in distinct:
            captures[key] = capture(key)
            self._callbacks.add(key, captures[key])
            self._watchers.add(key, watch)
        return self

    def all(self, *args: Any) -> EventProxy:
        """
        Call `callback` once every event has fired, with the latest payload of
        each event in the order the events were given.

        `proxy.all("user", "posts", callback)` calls `callback(user, posts)`
        once, then forgets both events. Lists of events are flattened, so
        `proxy.all(["user", "posts"], callback)` is the same call.

        Calls without any event, or whose last argument is not callable, are
        ignored.

        Args:
            *args: The events, followed by the callback.

        Returns:
            EventProxy: This proxy, for chaining.
        """
        return self._assign(args, once=True)

    assign = all

    def tail(self, *args: Any) -> EventProxy:
        """
        Like `all`, but the callback stays registered: after the first call, every
        further trigger of one of the events calls it again with the latest
        payloads.
        """
        return self._assign(args, once=False)

    assign_all = assign_always = tail

    def after(self, event: Hashable, times: int, callback: Callback) -> EventProxy:
        """
        Call `callback` with the list of payloads once `event` has fired `times`
        times, or once `times` callbacks from `group(event)` have completed.

        Direct triggers are listed in arrival order. Group results are listed in
        the order the `group` callbacks were created, whatever order they
        complete in. `times == 0` calls `callback([])` right away.

        Args:
            event (Hashable): The event to count.
            times (int): The number of occurrences to wait for.
            callback (Callback): Called with the list of payloads.

        Returns:
            EventProxy: This proxy, for chaining.
        """
        if times == 0:
            callback([])
            return self

        state = self._groups[event] = _GroupState()
        channel = Channel(event, GROUP)
        fired: List[Any] = []
        remaining = times
        logger.debug("After %r fires %d times, its listener will run", event, times)

        def watch(name: Hashable, *data: Any) -> None:
            nonlocal remaining
            grouped = isinstance(name, Channel)
            if grouped:
                index, result = data[0]
                state.results[index] = result
            else:
                fired.append(_payload(data))
            remaining -= 1
            if remaining < 1:
                self._watchers.remove(event, watch)
                self._watchers.remove(channel, watch)
                logger.debug("Event %r fired %d times, running listener", event, times)
                callback(state.ordered() if grouped else fired)

        self._watchers.add(event, watch)
        self._watchers.add(channel, watch)
        return self

    def group(self, event: Hashable, map_fn: Optional[Callable[..., Any]] = None) -> NodeCallback:
        """
        Return a `callback(err, *results)` that feeds one result into `after(event, ...)`.

        Each call to `group` reserves the next slot of the result list, so call
        it (after `after`) in the order the results should come out. A truthy
        `err` is emitted on the error event, with the remaining arguments.

        Args:
            event (Hashable): The event `after` is counting.
            map_fn (Optional[Callable[..., Any]], optional): Turns the results
                into the value to store. Defaults to keeping the first result.

        Returns:
            NodeCallback: The callback to hand to the asynchronous operation.
        """
        index = self._groups.setdefault(event, _GroupState()).next_index()
        channel = Channel(event, GROUP)

        def callback(err: Any = None, *rest: Any) -> None:
            if err:
                self._emit_error(err, *rest)
                return
            result = map_fn(*rest) if map_fn else _payload(rest)
            self.trigger(channel, GroupResult(index, result))

        return callback

    def any(self, *args: Any) -> EventProxy:
        """
        Call `callback(AnyEvent(event_name, data))` for whichever event fires first.

        The forwarding listeners stay bound to each event for the lifetime of
        the proxy, so repeated `any` calls over the same events accumulate them.

        Args:
            *args: The events, followed by the callback.

        Returns:
            EventProxy: This proxy, for chaining.
        """
        if len(args) < 2:
            return self
        *keys, callback = args
        events = _flatten(keys)
        channel = Channel(tuple(events), ANY)
        self.once(channel, callback)

        def forward(key: Hashable) -> Callback:
            def _forward(*data: Any) -> None:
                logger.debug("Event %r of %r fired first", key, events)
                self.trigger(channel, AnyEvent(key, _payload(data)))

            return _forward

        for key in events:
            self.add_listener(key, forward(key))
        return self

    def not_(self, event: Hashable, callback: Callback) -> EventProxy:
        """
        Call `callback(payload)` for every event except `event`.
        """

        def observer(name: Hashable, *data: Any) -> None:
            if name != event:
                callback(_payload(data))

        return self.bind_for_all(observer)

    # -------------------- errors --------------------
    def _emit_error(self, *args: Any) -> None:
        if ERROR_EVENT not in self._callbacks and ALL_EVENTS not in self._callbacks:
            logger.warning("Error emitted with no listener: %r", args[0])
        self.trigger(ERROR_EVENT, *args)

    def fail(self, callback: Callback) -> EventProxy:
        """
        Call `callback(err, *args)` on the first error event.

        Before `callback` runs, every listener of the proxy is removed, so no
        pending `all`, `tail` or `after` can complete after an error.

        Args:
            callback (Callback): Called with the error event's arguments.

        Returns:
            EventProxy: This proxy, for chaining.
        """

        def on_error(*args: Any) -> None:
            self.remove_listener()
            callback(*args)

        return self.once(ERROR_EVENT, on_error)

    def done(
        self, handler: Any, map_fn: Optional[Callable[..., Any]] = None
    ) -> NodeCallback:
        """
        Adapt a `callback(err, *results)` style callback.

        A truthy `err` is emitted on the error event with the other arguments.
        Otherwise:

        - callable `handler`: `handler(*results)`;
        - event `handler` with `map_fn`: emit `handler` with `map_fn(*results)`;
        - event `handler`: emit `handler` with `*results`.

        Args:
            handler (Any): A callable, or the event to emit.
            map_fn (Optional[Callable[..., Any]], optional): Turns the results
                into the single payload to emit. Defaults to None.

        Returns:
            NodeCallback: The adapted callback.

        Example:
        read_file(path, proxy.done("content"))
        """

        def callback(err: Any = None, *rest: Any) -> None:
            if err:
                self._emit_error(err, *rest)
                return
            if callable(handler):
                handler(*rest)
            elif map_fn is not None:
                self.trigger(handler, map_fn(*rest))
            else:
                self.trigger(handler, *rest)

        return callback

    def done_later(
        self, handler: Any, map_fn: Optional[Callable[..., Any]] = None
    ) -> NodeCallback:
        """Like `done`, but the adapted call runs on a later scheduler turn."""
        adapted = self.done(handler, map_fn)

        def callback(*args: Any) -> None:
            self._schedule_later(functools.partial(adapted, *args))

        return callback

    # -------------------- construction --------------------
    @classmethod
    def create(cls, *args: Any, schedule_later: Optional[LaterFunc] = None) -> EventProxy:
        """
        Build a proxy and wire `assign` (and `fail`) in one call.

        `EventProxy.create("a", "b", callback, error_callback)` is
        `EventProxy().fail(error_callback).assign("a", "b", callback)`; the
        error callback is taken only when the last two arguments are both
        callable.

        Args:
            *args: Events, the callback, and optionally the error callback.
            schedule_later (Optional[LaterFunc], optional): See `EventProxy`.

        Returns:
            EventProxy: The new proxy.
        """
        proxy = cls(schedule_later=schedule_later)
        rest = list(args)
        if rest:
            if len(rest) >= 2 and callable(rest[-1]) and callable(rest[-2]):
                proxy.fail(rest.pop())
            proxy.assign(*rest)
        return proxy
