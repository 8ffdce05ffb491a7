"""
Unit tests for PipeRelay.
"""

import io
import threading

import pytest

from quickshare.domain.errors import ShareTimeoutError
from quickshare.domain.pipes import PipeRelay


def _send_in_thread(relay, name, data):
    result = {}

    def run():
        try:
            result["bytes"] = relay.send(name, io.BytesIO(data))
        except ShareTimeoutError as e:
            result["error"] = e

    thread = threading.Thread(target=run)
    thread.start()
    return thread, result


def test_relays_one_body_from_sender_to_receiver():
    relay = PipeRelay(timeout=5)
    data = b"through the pipe" * 10_000
    thread, result = _send_in_thread(relay, "demo", data)

    transfer = relay.receive("demo")
    received = b"".join(transfer.iter_chunks())
    transfer.finish()
    thread.join(timeout=5)

    assert received == data
    assert result == {"bytes": len(data)}
    assert relay.active_pipes() == 0


def test_receiver_waiting_first_gets_later_sender():
    relay = PipeRelay(timeout=5)
    received = {}

    def receive():
        transfer = relay.receive("later")
        received["data"] = b"".join(transfer.iter_chunks())
        transfer.finish()

    receiver = threading.Thread(target=receive)
    receiver.start()

    assert relay.send("later", io.BytesIO(b"hello")) == 5
    receiver.join(timeout=5)
    assert received["data"] == b"hello"


def test_each_body_goes_to_exactly_one_receiver():
    relay = PipeRelay(timeout=5)
    first, first_result = _send_in_thread(relay, "shared", b"one")
    second, second_result = _send_in_thread(relay, "shared", b"two")

    bodies = []
    for _ in range(2):
        transfer = relay.receive("shared")
        bodies.append(b"".join(transfer.iter_chunks()))
        transfer.finish()
    first.join(timeout=5)
    second.join(timeout=5)

    assert sorted(bodies) == [b"one", b"two"]
    assert first_result["bytes"] == 3
    assert second_result["bytes"] == 3


def test_pipes_with_different_names_are_independent():
    relay = PipeRelay(timeout=0.2)
    thread, result = _send_in_thread(relay, "a", b"data")

    with pytest.raises(ShareTimeoutError):
        relay.receive("b")

    thread.join(timeout=5)
    assert isinstance(result["error"], ShareTimeoutError)


def test_sender_without_receiver_times_out_and_pipe_is_pruned():
    relay = PipeRelay(timeout=0.1)

    with pytest.raises(ShareTimeoutError):
        relay.send("lonely", io.BytesIO(b"data"))

    assert relay.active_pipes() == 0


def test_receiver_without_sender_times_out():
    relay = PipeRelay(timeout=0.1)

    with pytest.raises(ShareTimeoutError):
        relay.receive("empty")

    assert relay.active_pipes() == 0
