from __future__ import annotations

import time
from dataclasses import dataclass, field


@dataclass(slots=True)
class _Timed:
    bytes_transferred: int = 0
    timeouts: int = 0
    started: float = field(default_factory=time.monotonic)
    finished: float | None = None

    @property
    def duration_s(self) -> float:
        if self.finished is None:
            return 0.0
        return max(0.0, self.finished - self.started)

    @property
    def throughput_mbps(self) -> float:
        if self.duration_s <= 0:
            return 0.0
        return (self.bytes_transferred * 8 / 1_000_000) / self.duration_s


@dataclass(slots=True)
class SendStats(_Timed):
    frames_sent: int = 0
    acks_received: int = 0
    retransmits: int = 0

    @property
    def dropped(self) -> int:
        # Stale acks count as received, so this is a lower bound.
        return max(0, self.frames_sent - self.acks_received)


@dataclass(slots=True)
class ReceiveStats(_Timed):
    data_frames_received: int = 0
    frames_accepted: int = 0
    eof_accepted: bool = False
    acks_sent: int = 0
    duplicates: int = 0
    discarded: int = 0

    @property
    def dropped(self) -> int:
        return max(0, self.acks_sent - self.frames_accepted - int(self.eof_accepted))
