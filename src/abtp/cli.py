from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict

from .bench import run_benchmark
from .constants import (
    DEFAULT_DATAGRAM_SIZE,
    DEFAULT_MAX_RETRIES,
    DEFAULT_TIMEOUT_MS,
    RECV_RTT_FILE,
    SEND_RTT_FILE,
)
from .errors import TransferError
from .net import Impairment
from .rtt import RttRecorder
from .server import EchoServer
from .session import Session

logger = logging.getLogger(__name__)


def cmd_transfer(args: argparse.Namespace) -> int:
    impair = Impairment(args.loss_rate, args.delay_ms)
    send_rtts = RttRecorder(SEND_RTT_FILE) if args.record_rtts else None
    recv_rtts = RttRecorder(RECV_RTT_FILE) if args.record_rtts else None

    try:
        with open(args.input, "rb") as src, Session.connect(
            args.host,
            args.port,
            args.datagram_size,
            args.timeout_ms,
            max_retries=args.max_retries,
            impairment=impair,
        ) as session:
            sent = session.send_stream(src, send_rtts)
            with open(args.output, "wb") as dst:
                received = session.receive_stream(
                    dst,
                    recv_rtts,
                    max_idle=2 * (args.max_retries + 1),
                )
    finally:
        for recorder in (send_rtts, recv_rtts):
            if recorder is not None:
                recorder.close()

    payload = {
        "role": "client",
        "datagram_size": session.params.datagram_size,
        "timeout_ms": session.params.timeout_ms,
        "bytes_sent": sent.bytes_transferred,
        "bytes_received": received.bytes_transferred,
        "send_seconds": sent.duration_s,
        "recv_seconds": received.duration_s,
        "dropped_frames": sent.dropped,
        "dropped_acks": received.dropped,
    }
    print(json.dumps(payload, indent=2) if args.json else payload)
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    impair = Impairment(args.loss_rate, args.delay_ms)
    while True:
        server = EchoServer.listening(
            args.listen_host,
            args.listen_port,
            impairment=impair,
            max_size=args.max_size,
            timeout_ms=args.timeout_ms,
            max_retries=args.max_retries,
        )
        try:
            recv_metrics, send_metrics = server.serve_once()
        except TransferError as exc:
            logger.warning("session failed: %s", exc)
            if args.once:
                return 1
            continue
        finally:
            server.close()

        payload = {
            "role": "server",
            "bytes": recv_metrics.bytes_transferred,
            "recv_seconds": recv_metrics.duration_s,
            "send_seconds": send_metrics.duration_s,
            "dropped_frames": send_metrics.dropped,
            "dropped_acks": recv_metrics.dropped,
        }
        print(json.dumps(payload, indent=2) if args.json else payload)
        if args.once:
            return 0


def cmd_bench(args: argparse.Namespace) -> int:
    r = run_benchmark(
        size_bytes=args.size_bytes,
        loss_rate=args.loss_rate,
        delay_ms=args.delay_ms,
        datagram_size=args.datagram_size,
        timeout_ms=args.timeout_ms,
        max_retries=args.max_retries,
    )
    payload = {"role": "bench", **asdict(r)}
    print(json.dumps(payload, indent=2) if args.json else payload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="abtp", description="Stop-and-wait file transfer over UDP.")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_common(x: argparse.ArgumentParser) -> None:
        x.add_argument("--max-retries", type=int, default=DEFAULT_MAX_RETRIES)
        x.add_argument("--loss-rate", type=float, default=0.0, help="simulate datagram loss")
        x.add_argument("--delay-ms", type=int, default=0, help="simulate per-datagram delay")
        x.add_argument("--json", action="store_true")

    transfer = sub.add_parser("transfer", help="send INPUT to a server and receive OUTPUT back")
    add_common(transfer)
    transfer.add_argument("timeout_ms", type=int, metavar="TIMEOUT_MS")
    transfer.add_argument("datagram_size", type=int, metavar="DATAGRAM_SIZE")
    transfer.add_argument("input", metavar="INPUT")
    transfer.add_argument("output", metavar="OUTPUT")
    transfer.add_argument("host", metavar="HOST")
    transfer.add_argument("port", type=int, metavar="PORT")
    transfer.add_argument(
        "-r",
        "--record-rtts",
        action="store_true",
        help=f"record RTT samples to {SEND_RTT_FILE} and {RECV_RTT_FILE}",
    )
    transfer.set_defaults(func=cmd_transfer)

    serve = sub.add_parser("serve", help="echo every received stream back to its sender")
    add_common(serve)
    serve.add_argument("--listen-host", default="0.0.0.0")
    serve.add_argument("--listen-port", type=int, required=True)
    serve.add_argument("--max-size", type=int, default=None, help="cap on the granted datagram size")
    serve.add_argument("--timeout-ms", type=int, default=None, help="timeout to grant instead of the requested one")
    serve.add_argument("--once", action="store_true", help="exit after one session")
    serve.set_defaults(func=cmd_serve)

    bench = sub.add_parser("bench", help="loopback benchmark against an in-process server")
    add_common(bench)
    bench.add_argument("--size-bytes", type=int, default=1_000_000)
    bench.add_argument("--datagram-size", type=int, default=DEFAULT_DATAGRAM_SIZE)
    bench.add_argument("--timeout-ms", type=int, default=DEFAULT_TIMEOUT_MS)
    bench.set_defaults(func=cmd_bench)

    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")
    try:
        return int(args.func(args))
    except TransferError as exc:
        logger.error("%s", exc)
        return 1
    except OSError as exc:
        logger.error("%s: %s", args.cmd, exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
