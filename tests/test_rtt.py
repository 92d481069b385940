from __future__ import annotations

import csv
import io

import pytest

from abtp.rtt import RttRecorder

from conftest import AckingTransport


def test_samples_written_after_close(tmp_path):
    path = tmp_path / "rtts.csv"
    recorder = RttRecorder(str(path))
    recorder(516, 0.25)
    recorder(2, 0.0015)
    recorder.close()

    with open(path, newline="") as f:
        rows = list(csv.reader(f))
    assert rows == [["size_bytes", "rtt_seconds"], ["516", "0.250000"], ["2", "0.001500"]]


def test_close_is_idempotent(tmp_path):
    recorder = RttRecorder(str(tmp_path / "rtts.csv"))
    recorder.close()
    recorder.close()


def test_recorder_as_frame_hook(tmp_path, make_session):
    path = tmp_path / "send.csv"
    with RttRecorder(str(path)) as recorder:
        make_session(AckingTransport()).send_stream(io.BytesIO(b"a" * 600), recorder)

    with open(path, newline="") as f:
        rows = list(csv.reader(f))
    assert [row[0] for row in rows[1:]] == ["516", "88", "2"]


def test_writer_failure_surfaces_on_close(tmp_path, monkeypatch):
    class FailingWriter:
        def writerow(self, row):
            raise OSError("disk full")

    monkeypatch.setattr(csv, "writer", lambda fp: FailingWriter())
    recorder = RttRecorder(str(tmp_path / "rtts.csv"))
    for _ in range(3):
        recorder(516, 0.1)

    with pytest.raises(OSError, match="disk full"):
        recorder.close()
