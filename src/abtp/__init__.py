"""Alternating-Bit Transfer Protocol (ABTP)

Stop-and-wait file transfer over UDP:
- a 12-byte ASCII handshake where the server grants datagram size and timeout
- one outstanding frame per direction, tagged with an alternating sequence bit
- timeout-driven retransmission and duplicate suppression on the receiving side

Framing, negotiation and the two state machines live in separate modules so
each can be driven without real sockets or real time.
"""

from .errors import (
    AbtpError,
    HandshakeExhausted,
    HandshakeRejected,
    LinkError,
    ParseError,
    RetriesExhausted,
    SequenceViolation,
    TransferError,
)
from .handshake import SessionParams, grant, negotiate
from .metrics import ReceiveStats, SendStats
from .net import Impairment, Transport, UdpEndpoint
from .packet import Ack, Data, Eof, Handshake, HandshakeAck, decode, decode_inbound, encode
from .receiver import Receiver
from .rtt import RttRecorder
from .sender import Sender
from .server import EchoServer
from .session import Session

__all__ = [
    "AbtpError",
    "Ack",
    "Data",
    "EchoServer",
    "Eof",
    "Handshake",
    "HandshakeAck",
    "HandshakeExhausted",
    "HandshakeRejected",
    "Impairment",
    "LinkError",
    "ParseError",
    "ReceiveStats",
    "Receiver",
    "RetriesExhausted",
    "RttRecorder",
    "SendStats",
    "Sender",
    "SequenceViolation",
    "Session",
    "SessionParams",
    "TransferError",
    "Transport",
    "UdpEndpoint",
    "decode",
    "decode_inbound",
    "encode",
    "grant",
    "negotiate",
]
