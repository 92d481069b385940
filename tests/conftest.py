from __future__ import annotations

import pytest

from abtp.handshake import SessionParams
from abtp.packet import Ack
from abtp.session import Session


class ScriptedTransport:
    """Replays a fixed list of inbound datagrams; ``None`` is a read timeout.

    Once the script runs out every read times out.
    """

    def __init__(self, inbound=()):
        self.inbound = list(inbound)
        self.sent: list[bytes] = []
        self.closed = False

    def send(self, data: bytes) -> None:
        self.sent.append(bytes(data))

    def recv(self, bufsize: int, timeout_ms: int) -> bytes | None:
        if not self.inbound:
            return None
        item = self.inbound.pop(0)
        return None if item is None else item[:bufsize]

    def close(self) -> None:
        self.closed = True


class AckingTransport:
    """Acknowledges every frame it is given, except for the send attempts
    listed in ``lose`` (0-based), whose ack never arrives."""

    def __init__(self, lose=()):
        self.lose = set(lose)
        self.sent: list[bytes] = []
        self.closed = False

    def send(self, data: bytes) -> None:
        self.sent.append(bytes(data))

    def recv(self, bufsize: int, timeout_ms: int) -> bytes | None:
        if len(self.sent) - 1 in self.lose:
            return None
        return Ack(seq=int(self.sent[-1][1:2])).to_bytes()

    def close(self) -> None:
        self.closed = True


class FakeClock:
    def __init__(self, step: float = 0.01):
        self.now = 0.0
        self.step = step

    def __call__(self) -> float:
        self.now += self.step
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_session(clock):
    def factory(transport, datagram_size=516, timeout_ms=500, max_retries=10):
        params = SessionParams(datagram_size=datagram_size, timeout_ms=timeout_ms)
        return Session(transport, params, max_retries=max_retries, clock=clock)

    return factory
