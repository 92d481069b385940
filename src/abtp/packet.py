from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Type, TypeVar, Union

from .constants import (
    ACK,
    DATA,
    EOF,
    FIELD_MAX,
    FIELD_WIDTH,
    HANDSHAKE,
    HANDSHAKE_ACK,
    HANDSHAKE_LEN,
    HEADER_LEN,
)
from .errors import ParseError


def _check_seq(seq: int) -> None:
    if seq not in (0, 1):
        raise ValueError(f"sequence bit must be 0 or 1, got {seq}")


def _check_field(name: str, value: int) -> None:
    if not 0 <= value <= FIELD_MAX:
        raise ValueError(f"{name} must fit in {FIELD_WIDTH} digits, got {value}")


def _parse_header(raw: bytes, tag: bytes) -> int:
    if len(raw) < HEADER_LEN:
        raise ParseError("datagram too small to hold a header")
    if raw[:1] != tag:
        raise ParseError(f"tag mismatch: expected {tag!r}, got {raw[:1]!r}")
    digit = raw[1:2]
    if digit not in (b"0", b"1"):
        raise ParseError(f"invalid sequence digit {digit!r}")
    return int(digit)


def _parse_field(raw: bytes) -> int:
    if len(raw) != FIELD_WIDTH or not raw.isdigit():
        raise ParseError(f"invalid numeric field {raw!r}")
    return int(raw)


@dataclass(frozen=True, slots=True)
class _ParamsFrame:
    TAG: ClassVar[bytes] = b""

    seq: int
    size: int
    timeout_ms: int

    def __post_init__(self) -> None:
        _check_seq(self.seq)
        _check_field("size", self.size)
        _check_field("timeout_ms", self.timeout_ms)

    def to_bytes(self) -> bytes:
        return b"%s%d%05d%05d" % (self.TAG, self.seq, self.size, self.timeout_ms)

    @classmethod
    def from_bytes(cls, raw: bytes):
        if len(raw) != HANDSHAKE_LEN:
            raise ParseError(f"expected {HANDSHAKE_LEN} bytes, got {len(raw)}")
        seq = _parse_header(raw, cls.TAG)
        size = _parse_field(raw[HEADER_LEN : HEADER_LEN + FIELD_WIDTH])
        timeout_ms = _parse_field(raw[HEADER_LEN + FIELD_WIDTH :])
        return cls(seq=seq, size=size, timeout_ms=timeout_ms)


@dataclass(frozen=True, slots=True)
class Handshake(_ParamsFrame):
    TAG: ClassVar[bytes] = HANDSHAKE


@dataclass(frozen=True, slots=True)
class HandshakeAck(_ParamsFrame):
    TAG: ClassVar[bytes] = HANDSHAKE_ACK


@dataclass(frozen=True, slots=True)
class _BareFrame:
    TAG: ClassVar[bytes] = b""

    seq: int

    def __post_init__(self) -> None:
        _check_seq(self.seq)

    def to_bytes(self) -> bytes:
        return b"%s%d" % (self.TAG, self.seq)

    @classmethod
    def from_bytes(cls, raw: bytes):
        if len(raw) != HEADER_LEN:
            raise ParseError(f"expected {HEADER_LEN} bytes, got {len(raw)}")
        return cls(seq=_parse_header(raw, cls.TAG))


@dataclass(frozen=True, slots=True)
class Ack(_BareFrame):
    TAG: ClassVar[bytes] = ACK


@dataclass(frozen=True, slots=True)
class Eof(_BareFrame):
    TAG: ClassVar[bytes] = EOF


@dataclass(frozen=True, slots=True)
class Data:
    TAG: ClassVar[bytes] = DATA

    seq: int
    payload: bytes = b""

    def __post_init__(self) -> None:
        _check_seq(self.seq)

    def to_bytes(self) -> bytes:
        return b"%s%d" % (self.TAG, self.seq) + self.payload

    @classmethod
    def from_bytes(cls, raw: bytes) -> "Data":
        seq = _parse_header(raw, cls.TAG)
        return cls(seq=seq, payload=bytes(raw[HEADER_LEN:]))


Frame = Union[Handshake, HandshakeAck, Ack, Data, Eof]
F = TypeVar("F", Handshake, HandshakeAck, Ack, Data, Eof)


def encode(frame: Frame) -> bytes:
    return frame.to_bytes()


def decode(raw: bytes, kind: Type[F]) -> F:
    return kind.from_bytes(raw)


def decode_inbound(raw: bytes) -> Data | Eof | None:
    """Classify a datagram arriving at a receiver.

    Data is tried first, then Eof. Anything else (a stray Ack from the other
    direction, a repeated handshake, noise) yields ``None``.
    """
    for kind in (Data, Eof):
        try:
            return kind.from_bytes(raw)
        except ParseError:
            continue
    return None
