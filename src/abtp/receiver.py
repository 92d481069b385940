from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, BinaryIO

from .errors import LinkError, RetriesExhausted
from .metrics import ReceiveStats
from .packet import Ack, Eof, decode_inbound
from .sender import FrameHook

if TYPE_CHECKING:
    from .session import Session

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Receiver:
    """Rebuilds a stream from inbound Data frames until an Eof is accepted.

    ``last_ack`` is what gets resent on a read timeout or a duplicate frame.
    It defaults to the Ack for the bit before ``session.recv_seq``; a server
    may seed it with its handshake reply instead. ``max_idle`` bounds the
    number of consecutive timeouts (``None`` waits forever).

    ``previous_ack`` is never resent; it holds the Ack before ``last_ack`` so
    callers can inspect the acknowledgment history after a run.
    """

    session: Session
    dst: BinaryIO
    on_frame: FrameHook | None = None
    last_ack: bytes | None = None
    previous_ack: bytes | None = None
    max_idle: int | None = None

    def run(self) -> ReceiveStats:
        session = self.session
        clock = session.clock
        stats = ReceiveStats(started=clock())
        if self.last_ack is None:
            self.last_ack = Ack(seq=session.recv_seq ^ 1).to_bytes()
        if self.previous_ack is None:
            self.previous_ack = Ack(seq=session.recv_seq).to_bytes()

        logger.info("receive start; expecting seq=%d", session.recv_seq)
        try:
            self._loop(stats)
            self.dst.flush()
        except OSError as exc:
            raise LinkError(
                f"i/o error while receiving: {exc}",
                phase="receive",
                bytes_transferred=stats.bytes_transferred,
                dropped=stats.dropped,
            ) from exc

        stats.finished = clock()
        logger.info(
            "receive done; bytes=%d accepted=%d duplicates=%d dropped~%d",
            stats.bytes_transferred,
            stats.frames_accepted,
            stats.duplicates,
            stats.dropped,
        )
        return stats

    def _loop(self, stats: ReceiveStats) -> None:
        session = self.session
        params = session.params
        clock = session.clock
        t_accept = stats.started
        idle = 0

        while True:
            raw = session.transport.recv(params.datagram_size, params.timeout_ms)
            if raw is None:
                stats.timeouts += 1
                idle += 1
                if self.max_idle is not None and idle > self.max_idle:
                    raise RetriesExhausted(
                        f"peer idle for {idle} consecutive timeouts",
                        phase="receive",
                        bytes_transferred=stats.bytes_transferred,
                        dropped=stats.dropped,
                    )
                self._resend_last(stats)
                continue
            idle = 0

            frame = decode_inbound(raw)
            if frame is None:
                stats.discarded += 1
                logger.debug("discarding stray %d byte datagram", len(raw))
                continue

            is_eof = isinstance(frame, Eof)
            if not is_eof:
                stats.data_frames_received += 1

            if frame.seq != session.recv_seq:
                stats.duplicates += 1
                logger.debug("duplicate seq=%d; re-acking", frame.seq)
                self._resend_last(stats)
                continue

            if is_eof:
                stats.eof_accepted = True
                self._ack(frame.seq, stats)
                return

            stats.frames_accepted += 1
            if self.on_frame is not None:
                self.on_frame(len(raw), clock() - t_accept)
            self.dst.write(frame.payload)
            stats.bytes_transferred += len(frame.payload)
            self._ack(frame.seq, stats)
            t_accept = clock()

    def _ack(self, seq: int, stats: ReceiveStats) -> None:
        ack = Ack(seq=seq).to_bytes()
        self.session.transport.send(ack)
        stats.acks_sent += 1
        self.session.recv_seq ^= 1
        self.previous_ack, self.last_ack = self.last_ack, ack

    def _resend_last(self, stats: ReceiveStats) -> None:
        self.session.transport.send(self.last_ack)
        stats.acks_sent += 1
