from __future__ import annotations

import io
import logging
import os
import threading
from dataclasses import dataclass

from .constants import DEFAULT_DATAGRAM_SIZE, DEFAULT_MAX_RETRIES, DEFAULT_TIMEOUT_MS
from .net import Impairment
from .server import EchoServer
from .session import Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BenchmarkResult:
    bytes_transferred: int
    duration_s: float
    throughput_mbps: float
    retransmits: int
    timeouts: int
    dropped_frames: int
    dropped_acks: int


def run_benchmark(
    *,
    size_bytes: int,
    loss_rate: float = 0.0,
    delay_ms: int = 0,
    datagram_size: int = DEFAULT_DATAGRAM_SIZE,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> BenchmarkResult:
    payload = os.urandom(size_bytes)
    impair = Impairment(loss_rate=loss_rate, delay_ms=delay_ms)

    server = EchoServer.listening("127.0.0.1", 0, impairment=impair, max_retries=max_retries)
    host, port = server.address
    server_errors: list[Exception] = []

    def serve_runner():
        try:
            server.serve_once(wait_ms=timeout_ms * (max_retries + 1))
        except Exception as exc:
            server_errors.append(exc)
        finally:
            server.close()

    t = threading.Thread(target=serve_runner, daemon=True)
    t.start()

    echoed = io.BytesIO()
    with Session.connect(
        host,
        port,
        datagram_size,
        timeout_ms,
        max_retries=max_retries,
        impairment=impair,
    ) as session:
        send_metrics = session.send_stream(io.BytesIO(payload))
        recv_metrics = session.receive_stream(echoed, max_idle=2 * (max_retries + 1))

    t.join(timeout=10.0)
    if echoed.getvalue() != payload:
        raise RuntimeError(f"echo mismatch: sent {size_bytes} bytes, got {len(echoed.getvalue())} back")
    if server_errors:
        # The ack for the server's Eof is never confirmed, so under loss the
        # server may give up after the client already has every byte.
        logger.warning("server finished with %s", server_errors[0])

    duration_s = max(0.001, send_metrics.duration_s)
    throughput_mbps = (size_bytes * 8 / 1_000_000) / duration_s

    return BenchmarkResult(
        bytes_transferred=send_metrics.bytes_transferred,
        duration_s=duration_s,
        throughput_mbps=throughput_mbps,
        retransmits=send_metrics.retransmits,
        timeouts=send_metrics.timeouts + recv_metrics.timeouts,
        dropped_frames=send_metrics.dropped,
        dropped_acks=recv_metrics.dropped,
    )
