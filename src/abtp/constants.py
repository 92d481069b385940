from __future__ import annotations

HANDSHAKE = b"C"
HANDSHAKE_ACK = b"A"
ACK = b"A"
DATA = b"D"
EOF = b"E"

HEADER_LEN = 2  # tag, sequence digit
HANDSHAKE_LEN = 12  # tag, sequence digit, size(5), timeout(5)
FIELD_WIDTH = 5
FIELD_MAX = 99_999

HANDSHAKE_SEQ = 0

DEFAULT_DATAGRAM_SIZE = 516
DEFAULT_TIMEOUT_MS = 250
DEFAULT_MAX_RETRIES = 10

SEND_RTT_FILE = "./sendRTTs.csv"
RECV_RTT_FILE = "./recvRTTs.csv"
RTT_HEADER = ("size_bytes", "rtt_seconds")
