"""
BBoard Client Session

One session per accepted connection: handshake, then a
read-dispatch-write loop until the client leaves or the stream fails.
"""

import asyncio
import logging
from enum import Enum
from typing import Optional, TYPE_CHECKING

from ..config import BoardConfig
from ..utils.formatting import format_welcome
from .board import SharedBoard

if TYPE_CHECKING:
    from .server import ServerStats

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Session lifecycle states."""
    HANDSHAKING = "handshaking"
    SERVING = "serving"
    CLOSED = "closed"


class BoardSession:
    """
    A single client connection.

    Holds nothing but its stream pair, its dispatcher, and a reference to
    the shared board.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        board: SharedBoard,
        config: BoardConfig,
        stats: Optional["ServerStats"] = None
    ):
        self.reader = reader
        self.writer = writer
        self.board = board
        self.config = config
        self.stats = stats
        # Deferred: the dispatcher imports this package
        from ..commands.dispatcher import CommandDispatcher
        self.dispatcher = CommandDispatcher(board)
        self.state = SessionState.HANDSHAKING

        peer = writer.get_extra_info("peername")
        self.peer = f"{peer[0]}:{peer[1]}" if isinstance(peer, tuple) else str(peer)

    async def run(self):
        """Serve the connection until it closes."""
        logger.info(f"Client connected: {self.peer}")

        try:
            await self._send([format_welcome(self.config)])
            self.state = SessionState.SERVING

            while self.state is SessionState.SERVING:
                line = await self._read_line()
                if line is None:
                    logger.info(f"Client closed connection: {self.peer}")
                    break

                line = line.strip()
                if not line:
                    continue

                logger.debug(f"FROM {self.peer}: {line}")

                reply = self.dispatcher.dispatch(line)
                if self.stats:
                    self.stats.commands_processed += 1

                await self._send(reply.lines)

                if reply.close:
                    logger.info(f"Client disconnected: {self.peer}")
                    break

        except (ConnectionError, asyncio.IncompleteReadError) as e:
            logger.info(f"Connection lost for {self.peer}: {e}")
        except asyncio.LimitOverrunError as e:
            logger.warning(f"Line too long from {self.peer}: {e}")
        except Exception:
            logger.exception(f"Error serving {self.peer}")
            if self.stats:
                self.stats.errors += 1
        finally:
            await self.close()

    async def _read_line(self) -> Optional[str]:
        """Read one line, or None at end of input."""
        try:
            data = await self.reader.readline()
        except ValueError as e:
            # StreamReader.readline reports an over-long line as ValueError
            raise asyncio.LimitOverrunError(str(e), 0) from e

        if not data:
            return None

        return data.decode("utf-8", errors="replace")

    async def _send(self, lines: list[str]):
        """Write reply lines and wait for them to flush."""
        if not lines:
            return

        payload = "".join(f"{line}\n" for line in lines)
        self.writer.write(payload.encode("utf-8"))
        await self.writer.drain()

    async def close(self):
        """Release the connection. Safe to call more than once."""
        if self.state is SessionState.CLOSED:
            return

        self.state = SessionState.CLOSED
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except ConnectionError as e:
            logger.debug(f"Error closing {self.peer}: {e}")
