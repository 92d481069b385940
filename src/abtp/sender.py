from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, BinaryIO, Callable

from .errors import LinkError, ParseError, RetriesExhausted
from .metrics import SendStats
from .packet import Ack, Data, Eof

if TYPE_CHECKING:
    from .session import Session

logger = logging.getLogger(__name__)

FrameHook = Callable[[int, float], None]


@dataclass(slots=True)
class Sender:
    session: Session
    src: BinaryIO
    on_frame: FrameHook | None = None

    def run(self) -> SendStats:
        session = self.session
        clock = session.clock
        capacity = session.params.payload_size
        stats = SendStats(started=clock())
        logger.info("send start; payload per frame=%d bytes", capacity)

        try:
            while True:
                chunk = self.src.read(capacity)
                final = not chunk

                session.send_seq ^= 1
                if final:
                    frame: Data | Eof = Eof(seq=session.send_seq)
                else:
                    frame = Data(seq=session.send_seq, payload=chunk)
                raw = frame.to_bytes()

                t_send = clock()
                self._deliver(raw, frame.seq, stats)
                if not final:
                    stats.bytes_transferred += len(chunk)
                if self.on_frame is not None:
                    self.on_frame(len(raw), clock() - t_send)

                if final:
                    break
        except OSError as exc:
            raise LinkError(
                f"i/o error while sending: {exc}",
                phase="send",
                bytes_transferred=stats.bytes_transferred,
                dropped=stats.dropped,
            ) from exc

        stats.finished = clock()
        logger.info(
            "send done; bytes=%d frames=%d retransmits=%d dropped~%d",
            stats.bytes_transferred,
            stats.frames_sent,
            stats.retransmits,
            stats.dropped,
        )
        return stats

    def _deliver(self, raw: bytes, seq: int, stats: SendStats) -> None:
        session = self.session
        params = session.params
        retries = 0

        while True:
            session.transport.send(raw)
            stats.frames_sent += 1

            reply = session.transport.recv(params.datagram_size, params.timeout_ms)
            if reply is None:
                stats.timeouts += 1
                logger.debug("timeout; seq=%d retry=%d", seq, retries + 1)
            else:
                try:
                    ack = Ack.from_bytes(reply)
                except ParseError:
                    logger.debug("discarding %d byte datagram while waiting for ack", len(reply))
                else:
                    stats.acks_received += 1
                    if ack.seq == seq:
                        return
                    logger.debug("stale ack; expected seq=%d got %d", seq, ack.seq)

            retries += 1
            if retries > session.max_retries:
                raise RetriesExhausted(
                    f"too many retries ({retries - 1}) at seq={seq}",
                    phase="send",
                    bytes_transferred=stats.bytes_transferred,
                    dropped=stats.dropped,
                )
            stats.retransmits += 1
