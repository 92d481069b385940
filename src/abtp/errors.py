from __future__ import annotations


class AbtpError(Exception):
    pass


class ParseError(AbtpError, ValueError):
    """A datagram did not match the expected frame layout."""


class TransferError(AbtpError):
    """Fatal failure of a handshake or transfer phase.

    Carries the phase it happened in along with the bytes moved and the loss
    estimate at the time of failure, so callers can log or restart the whole
    exchange.
    """

    def __init__(
        self,
        message: str,
        *,
        phase: str,
        bytes_transferred: int = 0,
        dropped: int = 0,
    ):
        super().__init__(message)
        self.message = message
        self.phase = phase
        self.bytes_transferred = bytes_transferred
        self.dropped = dropped

    def __str__(self) -> str:
        return (
            f"{self.message} (phase={self.phase}, "
            f"bytes={self.bytes_transferred}, dropped={self.dropped})"
        )


class HandshakeExhausted(TransferError):
    pass


class HandshakeRejected(TransferError):
    pass


class SequenceViolation(TransferError):
    pass


class RetriesExhausted(TransferError):
    pass


class LinkError(TransferError):
    """Socket or local stream failure other than a read deadline."""
