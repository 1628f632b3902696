"""Tests for EventProxy registration and dispatch."""

import logging

import pytest

from eventproxy import EventProxy, create


def test_create_without_arguments():
    """Test create() returns a bare proxy."""
    proxy = EventProxy.create()
    assert isinstance(proxy, EventProxy)
    assert create().list_receivers("evt") == []


def test_create_on_one_line():
    """Test create() wires assign for the given event."""
    out = []
    proxy = create("evt", out.append)

    proxy.emit("evt", "event data")
    assert out == ["event data"]


def test_create_with_error_callback():
    """Test create() wires fail when given two trailing callables."""
    out = []
    errors = []
    proxy = create("a", "b", lambda a, b: out.append((a, b)), errors.append)

    proxy.emit("a", 1)
    proxy.emit("error", "boom")
    proxy.emit("b", 2)

    assert errors == ["boom"]
    assert not out


def test_bind_trigger():
    """Test bind + trigger counts every trigger."""
    proxy = EventProxy()
    counter = []

    proxy.bind("event", lambda *args: counter.append(1))
    for _ in range(4):
        proxy.trigger("event")

    assert len(counter) == 4


def test_trigger_passes_all_arguments():
    """Test listeners receive every trigger argument."""
    proxy = EventProxy()
    result = {}

    def handler(a, b, c):
        result.update(a=a, b=b, c=c)

    proxy.on("evt", handler)
    proxy.fire("evt", 1, 2, 3)

    assert result == {"a": 1, "b": 2, "c": 3}


def test_trigger_returns_proxy():
    """Test trigger and bind are chainable."""
    proxy = EventProxy()
    assert proxy.subscribe("evt", lambda: None).trigger("evt") is proxy


def test_bind_twice_then_unbind():
    """Test a callback bound twice runs twice and is fully removed by one unbind."""
    proxy = EventProxy()
    counter = []

    def handler():
        counter.append(1)

    proxy.bind("event", handler)
    proxy.trigger("event")
    assert len(counter) == 1

    proxy.bind("event", handler)
    proxy.trigger("event")
    assert len(counter) == 3

    removed = proxy.unbind("event", handler)
    proxy.trigger("event")
    assert removed == 2
    assert len(counter) == 3


def test_unbind_event():
    """Test unbind(event) removes every listener of the event."""
    proxy = EventProxy()
    counter = []

    proxy.bind("event", lambda: counter.append(1))
    proxy.trigger("event")
    proxy.unbind("event")
    proxy.trigger("event")

    assert len(counter) == 1


def test_remove_all_listeners():
    """Test remove_all_listeners() with and without an event."""
    proxy = EventProxy()
    counter = []

    proxy.bind("a", lambda: counter.append("a"))
    proxy.bind("b", lambda: counter.append("b"))

    assert proxy.remove_all_listeners("a") == 1
    proxy.trigger("a").trigger("b")
    assert counter == ["b"]

    assert proxy.remove_all_listeners() == 1
    proxy.trigger("b")
    assert counter == ["b"]


def test_headbind_runs_first():
    """Test headbind listeners run before bind listeners."""
    proxy = EventProxy()
    out = []

    proxy.bind("event", lambda: out.append("bind"))
    proxy.headbind("event", lambda: out.append("headbind"))
    proxy.trigger("event")

    assert out == ["headbind", "bind"]


def test_once():
    """Test once listeners run a single time."""
    proxy = EventProxy()
    counter = []

    proxy.once("event", lambda: counter.append(1))
    proxy.trigger("event")
    proxy.trigger("event")

    assert len(counter) == 1
    assert proxy.list_receivers("event") == []


def test_once_removed_when_callback_raises():
    """Test a once listener is removed even if it raises."""
    proxy = EventProxy()

    def failing():
        raise ValueError("test error")

    proxy.once("event", failing)

    with pytest.raises(ValueError, match="test error"):
        proxy.trigger("event")

    proxy.trigger("event")
    assert proxy.list_receivers("event") == []


def test_immediate():
    """Test immediate binds and triggers right away."""
    proxy = EventProxy()
    counter = []

    proxy.immediate("event", lambda: counter.append(1))
    assert len(counter) == 1

    proxy.trigger("event")
    assert len(counter) == 2


def test_immediate_with_data():
    """Test asap passes its data to the immediate trigger."""
    proxy = EventProxy()
    param = object()
    out = []

    proxy.asap("event", out.append, param)
    proxy.trigger("event", param)

    assert out == [param, param]


def test_bind_for_all():
    """Test all-events listeners receive the event name then the arguments."""
    proxy = EventProxy()
    out = []

    def observer(event, *args):
        out.append((event, args))

    proxy.bind("a", lambda x: out.append(("own", (x,))))
    proxy.bind_for_all(observer)
    proxy.trigger("a", 1)
    proxy.trigger("b", 2, 3)

    assert out == [("own", (1,)), ("a", (1,)), ("b", (2, 3))]

    proxy.unbind_for_all(observer)
    proxy.trigger("c")
    assert len(out) == 3


def test_receiver_decorator():
    """Test the receiver decorator registers the function."""
    proxy = EventProxy()
    out = []

    @proxy.receiver("evt")
    def handler(x):
        out.append(x)

    proxy.trigger("evt", 1).trigger("evt", 2)
    assert out == [1, 2]
    assert proxy.list_receivers("evt") == [handler]


def test_receiver_decorator_once():
    """Test the receiver decorator with once=True."""
    proxy = EventProxy()
    out = []

    @proxy.receiver("evt", once=True)
    def handler():  # pylint: disable=unused-variable
        out.append("called")

    proxy.trigger("evt")
    proxy.trigger("evt")
    assert out == ["called"]


def test_listener_exception_propagates():
    """Test exceptions in listeners propagate out of trigger."""
    proxy = EventProxy()

    def failing():
        raise ValueError("test error")

    proxy.bind("evt", failing)

    with pytest.raises(ValueError, match="test error"):
        proxy.trigger("evt")


def test_unbind_inside_listener():
    """Test a listener unbound by an earlier listener is skipped."""
    proxy = EventProxy()
    out = []

    def second():
        out.append("second")

    proxy.bind("evt", lambda: proxy.unbind("evt", second))
    proxy.bind("evt", second)
    proxy.trigger("evt")

    assert not out


def test_proxy_isolation():
    """Test listeners of one proxy never see another proxy's events."""
    first, second = EventProxy(), EventProxy()
    out = []

    first.bind("e", lambda: out.append("first"))
    second.bind("e", lambda: out.append("second"))
    first.trigger("e")

    assert out == ["first"]


def test_trigger_logs_debug(caplog):
    """Test triggers are logged at debug level."""
    proxy = EventProxy()

    with caplog.at_level(logging.DEBUG, logger="eventproxy"):
        proxy.trigger("evt", 1)

    assert "Emit event 'evt'" in caplog.text
