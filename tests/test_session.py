"""
Tests for BBoard client sessions and the server accept loop

Runs a real server on a loopback ephemeral port.
"""

import asyncio
import time

import pytest

from bboard.config import Config, ServerConfig, BoardConfig
from bboard.core.server import BulletinBoardServer

TIMEOUT = 5


def make_config(**server_overrides) -> Config:
    config = Config()
    config.server = ServerConfig(host="127.0.0.1", port=0, **server_overrides)
    config.board = BoardConfig(
        board_width=100,
        board_height=100,
        note_width=10,
        note_height=10,
        colors=["Red", "blue"],
    )
    return config


class LineClient:
    """Minimal asyncio client for talking to the server in tests."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.reader = reader
        self.writer = writer

    @classmethod
    async def connect(cls, server: BulletinBoardServer) -> "LineClient":
        host, port = server.address
        reader, writer = await asyncio.open_connection(host, port)
        return cls(reader, writer)

    async def send(self, line: str):
        self.writer.write(f"{line}\n".encode())
        await self.writer.drain()

    async def read(self) -> str:
        """Read one line; "" once the server has closed the stream."""
        try:
            data = await asyncio.wait_for(self.reader.readline(), TIMEOUT)
        except ConnectionResetError:
            return ""
        return data.decode().rstrip("\n")

    async def read_lines(self, count: int) -> list[str]:
        return [await self.read() for _ in range(count)]

    async def close(self):
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except ConnectionError:
            pass


async def wait_for(predicate, timeout: float = TIMEOUT):
    """Poll until predicate() is true."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("Condition not met in time")
        await asyncio.sleep(0.01)


class TestHandshake:
    """Tests for the WELCOME handshake."""

    @pytest.mark.asyncio
    async def test_welcome_line(self):
        """First line lists dimensions and lowercase colors."""
        server = BulletinBoardServer(make_config())
        await server.start()
        try:
            client = await LineClient.connect(server)
            assert await client.read() == "WELCOME 100 100 10 10 red blue"
            await client.close()
        finally:
            await server.shutdown()

    @pytest.mark.asyncio
    async def test_welcome_sent_once(self):
        """Only the handshake arrives before any command."""
        server = BulletinBoardServer(make_config())
        await server.start()
        try:
            client = await LineClient.connect(server)
            await client.read()

            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(client.reader.readline(), 0.2)

            await client.close()
        finally:
            await server.shutdown()


class TestServing:
    """Tests for the read-dispatch-write loop."""

    @pytest.mark.asyncio
    async def test_scenario(self):
        """The POST / PIN / SHAKE / UNPIN walkthrough over the wire."""
        server = BulletinBoardServer(make_config())
        await server.start()
        try:
            client = await LineClient.connect(server)
            await client.read()

            steps = [
                ("POST 0 0 red hi", "OK NOTE_POSTED"),
                ("POST 0 0 blue bye",
                 "ERROR COMPLETE_OVERLAP Note overlaps an existing note entirely"),
                ("PIN 5 5", "OK PIN_ADDED"),
                ("SHAKE", "OK SHAKE_COMPLETE"),
            ]
            for command, expected in steps:
                await client.send(command)
                assert await client.read() == expected

            await client.send("GET")
            assert await client.read_lines(2) == ["OK 1", "NOTE 0 0 red hi PINNED=true"]

            await client.send("UNPIN 5 5")
            assert await client.read() == "OK PIN_REMOVED"
            await client.send("SHAKE")
            assert await client.read() == "OK SHAKE_COMPLETE"

            await client.send("GET")
            assert await client.read() == "OK 0"

            await client.close()
        finally:
            await server.shutdown()

    @pytest.mark.asyncio
    async def test_blank_lines_skipped(self):
        """Blank lines get no reply; the next command still does."""
        server = BulletinBoardServer(make_config())
        await server.start()
        try:
            client = await LineClient.connect(server)
            await client.read()

            await client.send("")
            await client.send("   \t")
            await client.send("CLEAR")
            assert await client.read() == "OK CLEAR_COMPLETE"

            await client.close()
        finally:
            await server.shutdown()

    @pytest.mark.asyncio
    async def test_crlf_accepted(self):
        """Windows line endings are tolerated."""
        server = BulletinBoardServer(make_config())
        await server.start()
        try:
            client = await LineClient.connect(server)
            await client.read()

            client.writer.write(b"POST 0 0 blue crlf\r\nGET refersTo=crlf\r\n")
            await client.writer.drain()

            assert await client.read_lines(3) == [
                "OK NOTE_POSTED",
                "OK 1",
                "NOTE 0 0 blue crlf PINNED=false",
            ]

            await client.close()
        finally:
            await server.shutdown()

    @pytest.mark.asyncio
    async def test_errors_keep_connection_open(self):
        """Format and domain errors do not end the session."""
        server = BulletinBoardServer(make_config())
        await server.start()
        try:
            client = await LineClient.connect(server)
            await client.read()

            await client.send("NONSENSE")
            assert await client.read() == "ERROR INVALID_FORMAT Unknown command"
            await client.send("PIN 1 1")
            assert await client.read() == "ERROR NO_NOTE_AT_COORDINATE"
            await client.send("GET PINS")
            assert await client.read() == "OK 0"

            await client.close()
        finally:
            await server.shutdown()


class TestDisconnect:
    """Tests for session termination."""

    @pytest.mark.asyncio
    async def test_disconnect_command(self):
        """DISCONNECT replies OK BYE, then the server closes the stream."""
        server = BulletinBoardServer(make_config())
        await server.start()
        try:
            client = await LineClient.connect(server)
            await client.read()

            await client.send("DISCONNECT")
            assert await client.read() == "OK BYE"

            # EOF from the server side
            assert await client.read() == ""
            await wait_for(lambda: server.session_count == 0)

            await client.close()
        finally:
            await server.shutdown()

    @pytest.mark.asyncio
    async def test_lines_after_disconnect_ignored(self):
        """Commands pipelined after DISCONNECT are never executed."""
        server = BulletinBoardServer(make_config())
        await server.start()
        try:
            client = await LineClient.connect(server)
            await client.read()

            client.writer.write(b"DISCONNECT\nPOST 0 0 red late\n")
            await client.writer.drain()

            assert await client.read() == "OK BYE"
            await wait_for(lambda: server.session_count == 0)
            assert server.board.counts() == (0, 0)

            await client.close()
        finally:
            await server.shutdown()

    @pytest.mark.asyncio
    async def test_client_close_ends_session(self):
        """Closing the client ends its session without affecting others."""
        server = BulletinBoardServer(make_config())
        await server.start()
        try:
            first = await LineClient.connect(server)
            second = await LineClient.connect(server)
            await first.read()
            await second.read()
            await wait_for(lambda: server.session_count == 2)

            await first.send("POST 0 0 red survivor")
            assert await first.read() == "OK NOTE_POSTED"
            await first.close()
            await wait_for(lambda: server.session_count == 1)

            await second.send("GET")
            assert await second.read_lines(2) == [
                "OK 1",
                "NOTE 0 0 red survivor PINNED=false",
            ]

            await second.close()
        finally:
            await server.shutdown()

    @pytest.mark.asyncio
    async def test_line_too_long_closes_session(self):
        """An over-long line ends only that session."""
        server = BulletinBoardServer(make_config(max_line_length=64))
        await server.start()
        try:
            client = await LineClient.connect(server)
            await client.read()

            await client.send("POST 0 0 red " + "x" * 200)
            assert await client.read() == ""
            await wait_for(lambda: server.session_count == 0)

            other = await LineClient.connect(server)
            assert (await other.read()).startswith("WELCOME")
            await other.close()

            await client.close()
        finally:
            await server.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_closes_sessions(self):
        """Server shutdown closes live client streams."""
        server = BulletinBoardServer(make_config())
        await server.start()

        client = await LineClient.connect(server)
        await client.read()
        await wait_for(lambda: server.session_count == 1)

        await server.shutdown()

        assert await client.read() == ""
        assert server.session_count == 0
        await client.close()


class TestSharedBoard:
    """Tests for one board shared by many sessions."""

    @pytest.mark.asyncio
    async def test_sessions_share_board(self):
        """A note posted by one client is visible to another."""
        server = BulletinBoardServer(make_config())
        await server.start()
        try:
            alice = await LineClient.connect(server)
            bob = await LineClient.connect(server)
            await alice.read()
            await bob.read()

            await alice.send("POST 10 10 blue from alice")
            assert await alice.read() == "OK NOTE_POSTED"

            await bob.send("PIN 12 12")
            assert await bob.read() == "OK PIN_ADDED"

            await alice.send("GET color=blue")
            assert await alice.read_lines(2) == [
                "OK 1",
                "NOTE 10 10 blue from alice PINNED=true",
            ]

            await alice.close()
            await bob.close()
        finally:
            await server.shutdown()

    @pytest.mark.asyncio
    async def test_many_concurrent_clients(self):
        """Concurrent clients posting distinct notes all succeed."""
        server = BulletinBoardServer(make_config())
        await server.start()

        async def post_row(row: int) -> list[str]:
            client = await LineClient.connect(server)
            await client.read()
            replies = []
            for col in range(9):
                await client.send(f"POST {col * 10} {row * 10} red n{row}-{col}")
                replies.append(await client.read())
            await client.send("DISCONNECT")
            await client.read()
            await client.close()
            return replies

        try:
            results = await asyncio.gather(*(post_row(r) for r in range(9)))

            assert all(r == "OK NOTE_POSTED" for replies in results for r in replies)
            assert server.board.counts() == (81, 0)
            assert server.stats.sessions_opened == 9
        finally:
            await server.shutdown()


class TestStats:
    """Tests for periodic statistics."""

    @pytest.mark.asyncio
    async def test_log_stats(self, caplog):
        """Stats line reports sessions, commands and board counts."""
        server = BulletinBoardServer(make_config())
        await server.start()
        try:
            client = await LineClient.connect(server)
            await client.read()
            await client.send("POST 0 0 red hi")
            await client.read()
            await client.send("PIN 1 1")
            await client.read()

            with caplog.at_level("INFO", logger="bboard.core.server"):
                server.log_stats()

            assert "sessions=1" in caplog.text
            assert "cmds=2" in caplog.text
            assert "notes=1, pins=1" in caplog.text

            await client.close()
        finally:
            await server.shutdown()

    @pytest.mark.asyncio
    async def test_maintenance_respects_interval(self):
        """Stats are not logged before the interval elapses."""
        server = BulletinBoardServer(make_config(stats_interval_seconds=3600))
        await server.start()
        try:
            last = server._last_stats_log
            await server._maintenance()
            assert server._last_stats_log == last
        finally:
            await server.shutdown()
