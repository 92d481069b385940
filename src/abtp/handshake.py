from __future__ import annotations

import logging
from dataclasses import dataclass

from .constants import DEFAULT_MAX_RETRIES, HANDSHAKE_LEN, HANDSHAKE_SEQ, HEADER_LEN
from .errors import (
    HandshakeExhausted,
    HandshakeRejected,
    LinkError,
    ParseError,
    SequenceViolation,
)
from .net import Transport
from .packet import Handshake, HandshakeAck

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SessionParams:
    datagram_size: int
    timeout_ms: int

    def __post_init__(self) -> None:
        if self.datagram_size <= HEADER_LEN:
            raise ValueError(f"datagram size must exceed {HEADER_LEN} bytes, got {self.datagram_size}")
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout_ms} ms")

    @property
    def payload_size(self) -> int:
        return self.datagram_size - HEADER_LEN


def negotiate(
    transport: Transport,
    requested_size: int,
    requested_timeout_ms: int,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> SessionParams:
    """Run the client side of the handshake.

    The identical handshake datagram is resent on every timeout, so repeats
    are harmless to the server. The returned parameters are the ones the
    server granted, which may differ from the request.
    """
    request = Handshake(seq=HANDSHAKE_SEQ, size=requested_size, timeout_ms=requested_timeout_ms)
    raw = request.to_bytes()
    bufsize = max(requested_size, HANDSHAKE_LEN)
    logger.info("negotiating session: size=%d bytes timeout=%d ms", requested_size, requested_timeout_ms)

    for attempt in range(max_retries + 1):
        try:
            transport.send(raw)
            reply = transport.recv(bufsize, requested_timeout_ms)
        except OSError as exc:
            raise LinkError(f"socket error during handshake: {exc}", phase="handshake") from exc

        if reply is None:
            logger.debug("handshake timed out; attempt=%d", attempt + 1)
            continue

        try:
            granted = HandshakeAck.from_bytes(reply)
        except ParseError as exc:
            logger.debug("discarding handshake reply: %s", exc)
            continue

        if granted.seq != request.seq:
            raise SequenceViolation(
                f"handshake sequence mismatch: expected {request.seq}, got {granted.seq}",
                phase="handshake",
            )

        try:
            params = SessionParams(datagram_size=granted.size, timeout_ms=granted.timeout_ms)
        except ValueError as exc:
            raise HandshakeRejected(f"unusable session parameters: {exc}", phase="handshake") from exc

        logger.info(
            "session established: size=%d bytes timeout=%d ms",
            params.datagram_size,
            params.timeout_ms,
        )
        return params

    raise HandshakeExhausted(
        f"no handshake reply after {max_retries + 1} attempts",
        phase="handshake",
    )


def grant(
    request: Handshake,
    max_size: int | None = None,
    timeout_ms: int | None = None,
) -> HandshakeAck:
    size = request.size if max_size is None else min(request.size, max_size)
    timeout = request.timeout_ms if timeout_ms is None else timeout_ms
    return HandshakeAck(seq=request.seq, size=size, timeout_ms=timeout)
