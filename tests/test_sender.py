from __future__ import annotations

import io
import math

import pytest

from abtp.errors import LinkError, RetriesExhausted

from conftest import AckingTransport, ScriptedTransport


def test_thousand_bytes_in_two_frames(make_session):
    payload = bytes(range(256)) * 3 + b"z" * 232
    t = AckingTransport()
    session = make_session(t, datagram_size=516)
    samples = []

    stats = session.send_stream(io.BytesIO(payload), lambda size, rtt: samples.append(size))

    assert t.sent == [b"D1" + payload[:514], b"D0" + payload[514:], b"E1"]
    assert stats.bytes_transferred == 1000
    assert stats.frames_sent == 3
    assert stats.acks_received == 3
    assert stats.dropped == 0
    assert samples == [516, 488, 2]
    assert session.send_seq == 1


def test_lost_ack_resends_same_frame(make_session):
    t = AckingTransport(lose={0})
    stats = make_session(t).send_stream(io.BytesIO(b"hello"))

    assert t.sent == [b"D1hello", b"D1hello", b"E0"]
    assert stats.retransmits == 1
    assert stats.timeouts == 1
    assert stats.dropped == 1
    assert stats.bytes_transferred == 5


@pytest.mark.parametrize("lost", [0, 1, 2, 3])
def test_chunk_sent_once_per_lost_ack_plus_one(make_session, lost):
    t = AckingTransport(lose=set(range(lost)))
    make_session(t).send_stream(io.BytesIO(b"abc"))

    assert t.sent.count(b"D1abc") == lost + 1
    assert t.sent[-1] == b"E0"


def test_stale_ack_triggers_resend(make_session):
    t = ScriptedTransport([b"A0", b"A1", b"A0"])
    stats = make_session(t).send_stream(io.BytesIO(b"x" * 10))

    assert t.sent == [b"D1" + b"x" * 10, b"D1" + b"x" * 10, b"E0"]
    assert stats.acks_received == 3
    assert stats.retransmits == 1
    assert stats.dropped == 0


def test_non_ack_reply_is_discarded(make_session):
    t = ScriptedTransport([b"D1abc", b"A1", b"A0"])
    stats = make_session(t).send_stream(io.BytesIO(b"abc"))

    assert t.sent == [b"D1abc", b"D1abc", b"E0"]
    assert stats.acks_received == 2
    assert stats.dropped == 1


def test_retries_exhausted(make_session):
    t = ScriptedTransport([])
    with pytest.raises(RetriesExhausted) as exc_info:
        make_session(t, max_retries=2).send_stream(io.BytesIO(b"abc"))

    assert t.sent == [b"D1abc"] * 3
    err = exc_info.value
    assert err.phase == "send"
    assert err.bytes_transferred == 0
    assert err.dropped == 3


def test_retries_exhausted_reports_progress(make_session):
    t = ScriptedTransport([b"A1"])
    with pytest.raises(RetriesExhausted) as exc_info:
        make_session(t, max_retries=1).send_stream(io.BytesIO(b"y" * 600))
    assert exc_info.value.bytes_transferred == 514


@pytest.mark.parametrize("size", [0, 1, 514, 515, 1028, 5000])
@pytest.mark.parametrize("lose", [(), (0, 2, 3, 7, 8, 9)])
def test_logical_frame_count(make_session, size, lose):
    t = AckingTransport(lose=lose)
    stats = make_session(t, datagram_size=516).send_stream(io.BytesIO(b"q" * size))

    logical = [raw for i, raw in enumerate(t.sent) if i == 0 or raw != t.sent[i - 1]]
    assert len(logical) == math.ceil(size / 514) + 1
    assert logical[-1][:1] == b"E"
    assert stats.bytes_transferred == size
    assert stats.dropped >= 0


def test_hook_spans_retransmissions(make_session, clock):
    class Slow(ScriptedTransport):
        def recv(self, bufsize, timeout_ms):
            got = super().recv(bufsize, timeout_ms)
            clock.now += timeout_ms / 1000 if got is None else 0.002
            return got

    t = Slow([None, None, b"A1", b"A0"])
    samples = []
    make_session(t, timeout_ms=500).send_stream(io.BytesIO(b"abc"), lambda size, rtt: samples.append((size, rtt)))

    assert samples[0][0] == 5
    assert samples[0][1] == pytest.approx(1.002 + clock.step)
    assert samples[1][0] == 2


def test_read_error_becomes_link_error(make_session):
    class Broken(io.RawIOBase):
        def readable(self):
            return True

        def read(self, n=-1):
            raise OSError("disk gone")

    with pytest.raises(LinkError) as exc_info:
        make_session(AckingTransport()).send_stream(Broken())
    assert exc_info.value.phase == "send"
