"""
BBoard Client

Blocking line client for the board protocol. Handles the handshake and
reads the multi-line replies GET produces. Rendering is left to callers.
"""

import logging
import socket
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)


class ProtocolError(Exception):
    """Unexpected data, or the server closed the stream."""


@dataclass
class Welcome:
    """Board settings announced by the server handshake."""
    board_width: int
    board_height: int
    note_width: int
    note_height: int
    colors: list[str] = field(default_factory=list)

    @classmethod
    def parse(cls, line: str) -> "Welcome":
        """Parse a 'WELCOME <bw> <bh> <nw> <nh> <color>...' line."""
        parts = line.split()
        if len(parts) < 6 or parts[0] != "WELCOME":
            raise ProtocolError(f"Invalid handshake: {line!r}")

        try:
            dims = [int(p) for p in parts[1:5]]
        except ValueError as e:
            raise ProtocolError(f"Invalid handshake: {line!r}") from e

        return cls(*dims, colors=parts[5:])


class BoardClient:
    """
    Connection to a board server.

    Usage:
        with BoardClient("localhost", 4554) as client:
            client.command("POST 0 0 red hello")
    """

    def __init__(self, host: str, port: int, timeout: Optional[float] = 10.0):
        """
        Initialize client.

        Args:
            host: Server host name or address
            port: Server port
            timeout: Socket timeout in seconds (None blocks forever)
        """
        self.host = host
        self.port = port
        self.timeout = timeout
        self.welcome: Optional[Welcome] = None
        self._sock: Optional[socket.socket] = None
        self._file = None

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def connect(self) -> Welcome:
        """Connect and read the handshake."""
        logger.info(f"Connecting to {self.host}:{self.port}...")

        self._sock = socket.create_connection((self.host, self.port), timeout=self.timeout)
        self._file = self._sock.makefile("rw", encoding="utf-8", newline="\n")

        try:
            self.welcome = Welcome.parse(self._read_line())
        except (ProtocolError, OSError):
            self.close()
            raise

        logger.info(
            f"Connected: board {self.welcome.board_width}x{self.welcome.board_height}"
        )
        return self.welcome

    def command(self, line: str) -> list[str]:
        """
        Send one command and return its reply lines.

        A successful GET reply is 'OK <count>' followed by <count> lines;
        everything else is a single line.
        """
        if not self._file:
            raise ProtocolError("Not connected")

        # The server sends nothing back for blank lines
        if not line.strip():
            return []

        self._file.write(line.strip() + "\n")
        self._file.flush()

        first = self._read_line()
        replies = [first]

        verb = line.split(maxsplit=1)[0].upper()
        if verb == "GET" and first.startswith("OK "):
            count = int(first.split()[1])
            replies.extend(self._read_line() for _ in range(count))

        if verb == "DISCONNECT":
            self.close()

        return replies

    def _read_line(self) -> str:
        line = self._file.readline()
        if not line:
            raise ProtocolError("Connection closed by server")
        return line.rstrip("\r\n")

    def close(self):
        """Close the connection."""
        if self._file:
            try:
                self._file.close()
            finally:
                self._file = None

        if self._sock:
            try:
                self._sock.close()
            finally:
                self._sock = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
