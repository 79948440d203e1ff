"""
BBoard Server

Central orchestrator: owns the shared board, accepts connections and runs
one session task per client.
"""

import asyncio
import logging
import signal
import time
from typing import Optional

from ..config import Config
from ..utils.formatting import format_uptime
from .board import SharedBoard
from .session import BoardSession

logger = logging.getLogger(__name__)


class BulletinBoardServer:
    """
    Main server class - orchestrates the board and client sessions.

    Responsibilities:
    - Create the single shared board
    - Accept connections and start a session per client
    - Log periodic statistics
    - Handle graceful shutdown
    """

    def __init__(self, config: Config):
        """
        Initialize server with configuration.

        Args:
            config: Loaded configuration object
        """
        self.config = config
        self.running = False
        self.start_time: float = 0

        self.board = SharedBoard(config.board)

        # Set once the listener is bound
        self._server: Optional[asyncio.AbstractServer] = None

        # Session tracking: task -> session
        self._sessions: dict[asyncio.Task, BoardSession] = {}

        # Statistics
        self.stats = ServerStats()
        self._last_stats_log: float = 0

        logger.info(
            f"Board initialized: board={config.board.board_width}x{config.board.board_height}, "
            f"note={config.board.note_width}x{config.board.note_height}, "
            f"colors={', '.join(config.board.colors)}"
        )

    def run(self):
        """
        Main run loop - starts the server.

        Binds the listener and serves until a shutdown signal arrives.
        """
        self.running = True

        # Register signal handlers for graceful shutdown
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

        try:
            asyncio.run(self._main_loop())
        except Exception as e:
            logger.error(f"Error in main loop: {e}")
            raise

    async def _main_loop(self):
        """Main async event loop."""
        await self.start()

        try:
            while self.running:
                await self._maintenance()
                await asyncio.sleep(0.1)
        finally:
            await self.shutdown()

    async def start(self):
        """Bind the listening socket and begin accepting clients."""
        self.start_time = time.time()
        self._last_stats_log = self.start_time

        self._server = await asyncio.start_server(
            self._handle_client,
            host=self.config.server.host,
            port=self.config.server.port,
            limit=self.config.server.max_line_length,
        )

        logger.info(f"Server listening on {self.address[0]}:{self.address[1]}")

    @property
    def address(self) -> tuple[str, int]:
        """Return the bound (host, port), resolving an ephemeral port."""
        if not self._server or not self._server.sockets:
            return self.config.server.host, self.config.server.port
        sockname = self._server.sockets[0].getsockname()
        return sockname[0], sockname[1]

    async def _handle_client(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter
    ):
        """Connection callback: run a session until it ends."""
        session = BoardSession(
            reader, writer, self.board, self.config.board, self.stats
        )
        task = asyncio.current_task()
        self._sessions[task] = session
        self.stats.sessions_opened += 1

        try:
            await session.run()
        finally:
            self._sessions.pop(task, None)

    async def _maintenance(self):
        """Periodic statistics logging."""
        interval = self.config.server.stats_interval_seconds
        if interval <= 0:
            return

        now = time.time()
        if now - self._last_stats_log < interval:
            return

        self._last_stats_log = now
        self.log_stats()

    def log_stats(self):
        """Log uptime, session and board counters."""
        notes, pins = self.board.counts()
        logger.info(
            f"Stats: uptime={format_uptime(self.start_time)}, "
            f"sessions={self.session_count}, {self.stats}, "
            f"notes={notes}, pins={pins}"
        )

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}, initiating shutdown...")
        self.running = False

    async def shutdown(self):
        """Graceful shutdown: stop accepting, then close live sessions."""
        logger.info("Shutting down server...")

        self.running = False

        if self._server:
            self._server.close()

        # Closing the stream ends each session's read loop
        for session in list(self._sessions.values()):
            await session.close()

        tasks = list(self._sessions)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        if self._server:
            await self._server.wait_closed()
            self._server = None

        logger.info("Server shutdown complete")

    @property
    def uptime(self) -> float:
        """Return uptime in seconds."""
        if self.start_time == 0:
            return 0
        return time.time() - self.start_time

    @property
    def session_count(self) -> int:
        """Return number of active sessions."""
        return len(self._sessions)


class ServerStats:
    """Statistics tracking for the server."""

    def __init__(self):
        self.sessions_opened: int = 0
        self.commands_processed: int = 0
        self.errors: int = 0

    def __str__(self) -> str:
        return (
            f"opened={self.sessions_opened}, "
            f"cmds={self.commands_processed}, errs={self.errors}"
        )
