from __future__ import annotations

import time
from dataclasses import dataclass
from typing import BinaryIO, Callable

from .constants import DEFAULT_MAX_RETRIES, HANDSHAKE_SEQ
from .handshake import SessionParams, negotiate
from .metrics import ReceiveStats, SendStats
from .net import Impairment, Transport, UdpEndpoint
from .receiver import Receiver
from .sender import FrameHook, Sender


@dataclass(slots=True)
class Session:
    """Negotiated state for one send-then-receive exchange over one transport.

    ``send_seq`` is the bit carried by the last outbound frame and is toggled
    before each new one; ``recv_seq`` is the only inbound bit currently
    acceptable. Both directions start from the handshake's bit, so the first
    frame either way carries sequence 1.
    """

    transport: Transport
    params: SessionParams
    max_retries: int = DEFAULT_MAX_RETRIES
    send_seq: int = HANDSHAKE_SEQ
    recv_seq: int = HANDSHAKE_SEQ ^ 1
    clock: Callable[[], float] = time.monotonic

    @classmethod
    def negotiate(
        cls,
        transport: Transport,
        requested_size: int,
        requested_timeout_ms: int,
        max_retries: int = DEFAULT_MAX_RETRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> "Session":
        params = negotiate(transport, requested_size, requested_timeout_ms, max_retries)
        return cls(transport, params, max_retries=max_retries, clock=clock)

    @classmethod
    def connect(
        cls,
        host: str,
        port: int,
        requested_size: int,
        requested_timeout_ms: int,
        max_retries: int = DEFAULT_MAX_RETRIES,
        impairment: Impairment | None = None,
    ) -> "Session":
        udp = UdpEndpoint.connected(host, port, impairment=impairment)
        try:
            return cls.negotiate(udp, requested_size, requested_timeout_ms, max_retries)
        except BaseException:
            udp.close()
            raise

    def send_stream(self, src: BinaryIO, on_frame: FrameHook | None = None) -> SendStats:
        return Sender(self, src, on_frame).run()

    def receive_stream(
        self,
        dst: BinaryIO,
        on_frame: FrameHook | None = None,
        last_ack: bytes | None = None,
        max_idle: int | None = None,
    ) -> ReceiveStats:
        return Receiver(self, dst, on_frame, last_ack=last_ack, max_idle=max_idle).run()

    def close(self) -> None:
        self.transport.close()

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
