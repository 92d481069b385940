from __future__ import annotations

import json
import os
import threading

from abtp.bench import run_benchmark
from abtp.cli import main
from abtp.server import EchoServer


def test_transfer_command(tmp_path, capsys, monkeypatch):
    monkeypatch.chdir(tmp_path)
    src = tmp_path / "in.bin"
    dst = tmp_path / "out.bin"
    src.write_bytes(os.urandom(2048))

    server = EchoServer.listening("127.0.0.1", 0, max_retries=5)
    t = threading.Thread(target=lambda: (server.serve_once(wait_ms=5000), server.close()), daemon=True)
    t.start()
    host, port = server.address

    rc = main(["transfer", "300", "516", str(src), str(dst), host, str(port), "-r", "--json", "--max-retries", "5"])
    t.join(timeout=10.0)

    assert rc == 0
    assert dst.read_bytes() == src.read_bytes()
    out = json.loads(capsys.readouterr().out)
    assert out["bytes_sent"] == 2048
    assert out["bytes_received"] == 2048
    assert (tmp_path / "sendRTTs.csv").exists()
    assert (tmp_path / "recvRTTs.csv").exists()


def test_transfer_without_server_exits_nonzero(tmp_path):
    src = tmp_path / "in.bin"
    src.write_bytes(b"abc")
    silent = EchoServer.listening("127.0.0.1", 0)
    host, port = silent.address
    try:
        rc = main(["transfer", "20", "516", str(src), str(tmp_path / "out"), host, str(port), "--max-retries", "1"])
    finally:
        silent.close()
    assert rc == 1


def test_benchmark_without_loss():
    r = run_benchmark(size_bytes=20_000, timeout_ms=200, max_retries=5)
    assert r.bytes_transferred == 20_000
    assert r.dropped_frames >= 0
    assert r.throughput_mbps > 0


def test_missing_input_exits_nonzero(tmp_path, caplog):
    silent = EchoServer.listening("127.0.0.1", 0)
    host, port = silent.address
    missing = tmp_path / "nope.bin"
    try:
        rc = main(["transfer", "20", "516", str(missing), str(tmp_path / "out"), host, str(port)])
    finally:
        silent.close()

    assert rc == 1
    assert "nope.bin" in caplog.text
    assert not (tmp_path / "out").exists()
