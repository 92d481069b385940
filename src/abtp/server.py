from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from typing import Tuple

from .constants import DEFAULT_MAX_RETRIES
from .errors import HandshakeExhausted, ParseError
from .handshake import SessionParams, grant
from .metrics import ReceiveStats, SendStats
from .net import Impairment, Transport, UdpEndpoint
from .packet import Handshake, decode_inbound
from .session import Session

logger = logging.getLogger(__name__)


class HandshakeReplier:
    """Transport wrapper that answers a repeated client handshake with the
    original reply, until the first Data or Eof frame shows the client has it.

    Every datagram is still passed up unchanged.
    """

    def __init__(self, transport: Transport, reply: bytes):
        self.transport = transport
        self.reply = reply
        self.pending = True
        self.replies = 0

    def send(self, data: bytes) -> None:
        self.transport.send(data)

    def recv(self, bufsize: int, timeout_ms: int) -> bytes | None:
        raw = self.transport.recv(bufsize, timeout_ms)
        if raw is None or not self.pending:
            return raw
        try:
            Handshake.from_bytes(raw)
        except ParseError:
            if decode_inbound(raw) is not None:
                self.pending = False
        else:
            logger.debug("repeated handshake; resending reply")
            self.transport.send(self.reply)
            self.replies += 1
        return raw

    def close(self) -> None:
        self.transport.close()


@dataclass(slots=True)
class EchoServer:
    """Loopback peer: accept one handshake, receive a stream, send it back.

    ``max_size`` caps the granted datagram size and ``timeout_ms``, when set,
    overrides whatever timeout the client asked for.
    """

    udp: UdpEndpoint
    max_size: int | None = None
    timeout_ms: int | None = None
    max_retries: int = DEFAULT_MAX_RETRIES

    @classmethod
    def listening(
        cls,
        host: str,
        port: int,
        impairment: Impairment | None = None,
        **kwargs,
    ) -> "EchoServer":
        return cls(UdpEndpoint.listening(host, port, impairment=impairment), **kwargs)

    @property
    def address(self) -> Tuple[str, int]:
        return self.udp.address

    def accept(self, wait_ms: int | None = None) -> Tuple[Session, bytes]:
        while True:
            got = self.udp.recvfrom(65535, wait_ms)
            if got is None:
                raise HandshakeExhausted("no client handshake received", phase="accept")
            raw, addr = got
            try:
                request = Handshake.from_bytes(raw)
            except ParseError as exc:
                logger.debug("ignoring datagram from %s: %s", addr, exc)
                continue
            break

        reply = grant(request, max_size=self.max_size, timeout_ms=self.timeout_ms)
        params = SessionParams(datagram_size=reply.size, timeout_ms=reply.timeout_ms)
        self.udp.connect(addr)
        raw_reply = reply.to_bytes()
        self.udp.send(raw_reply)
        logger.info(
            "accepted %s:%d; granted size=%d bytes timeout=%d ms",
            addr[0],
            addr[1],
            params.datagram_size,
            params.timeout_ms,
        )
        transport = HandshakeReplier(self.udp, raw_reply)
        return Session(transport, params, max_retries=self.max_retries), raw_reply

    def serve_once(self, wait_ms: int | None = None) -> Tuple[ReceiveStats, SendStats]:
        session, raw_reply = self.accept(wait_ms)
        buf = io.BytesIO()
        # The reply also goes out again if the client goes quiet.
        recv_stats = session.receive_stream(
            buf,
            last_ack=raw_reply,
            max_idle=2 * (self.max_retries + 1),
        )
        buf.seek(0)
        send_stats = session.send_stream(buf)
        return recv_stats, send_stats

    def close(self) -> None:
        self.udp.close()
