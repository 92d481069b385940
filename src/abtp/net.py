from __future__ import annotations

import logging
import random
import socket
import time
from dataclasses import dataclass, field
from typing import Protocol, Tuple

logger = logging.getLogger(__name__)

Address = Tuple[str, int]


class Transport(Protocol):
    """A datagram pipe to a single peer.

    ``recv`` waits at most ``timeout_ms`` and has three outcomes: the datagram
    bytes, ``None`` when the deadline passes, or an ``OSError`` for anything
    fatal (socket closed, peer unreachable).
    """

    def send(self, data: bytes) -> None: ...

    def recv(self, bufsize: int, timeout_ms: int) -> bytes | None: ...

    def close(self) -> None: ...


@dataclass(frozen=True, slots=True)
class Impairment:
    loss_rate: float = 0.0
    delay_ms: int = 0
    rng: random.Random = field(default_factory=random.Random, compare=False)

    def should_drop(self) -> bool:
        return self.loss_rate > 0 and self.rng.random() < self.loss_rate

    def sleep_if_needed(self) -> None:
        if self.delay_ms > 0:
            time.sleep(self.delay_ms / 1000.0)


class UdpEndpoint:
    def __init__(self, sock: socket.socket, impairment: Impairment | None = None, name: str = ""):
        self.sock = sock
        self.impairment = impairment or Impairment()
        self.name = name

    @classmethod
    def listening(
        cls,
        host: str,
        port: int,
        impairment: Impairment | None = None,
    ) -> "UdpEndpoint":
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.bind((host, port))
        return cls(sock, impairment, name="server")

    @classmethod
    def connected(
        cls,
        host: str,
        port: int,
        impairment: Impairment | None = None,
    ) -> "UdpEndpoint":
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.connect((host, port))
        return cls(sock, impairment, name="client")

    @property
    def address(self) -> Address:
        return self.sock.getsockname()

    def connect(self, addr: Address) -> None:
        self.sock.connect(addr)

    def send(self, data: bytes) -> None:
        if self.impairment.should_drop():
            logger.debug("[%s] dropped outbound %d bytes", self.name, len(data))
            return
        self.impairment.sleep_if_needed()
        self.sock.send(data)

    def recv(self, bufsize: int, timeout_ms: int) -> bytes | None:
        got = self._recv_until(bufsize, time.monotonic() + timeout_ms / 1000.0)
        return None if got is None else got[0]

    def recvfrom(self, bufsize: int, timeout_ms: int | None = None) -> Tuple[bytes, Address] | None:
        if timeout_ms is None:
            return self._recv_until(bufsize, None)
        return self._recv_until(bufsize, time.monotonic() + timeout_ms / 1000.0)

    def _recv_until(self, bufsize: int, deadline: float | None) -> Tuple[bytes, Address] | None:
        while True:
            if deadline is None:
                self.sock.settimeout(None)
            else:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                self.sock.settimeout(remaining)
            try:
                data, addr = self.sock.recvfrom(bufsize)
            except TimeoutError:
                return None
            if self.impairment.should_drop():
                logger.debug("[%s] dropped inbound %d bytes", self.name, len(data))
                continue
            self.impairment.sleep_if_needed()
            return data, addr

    def close(self) -> None:
        self.sock.close()
