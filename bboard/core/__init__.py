"""BBoard Core Module - Shared board, client sessions, and server."""

from .board import SharedBoard, Note, Pin, Outcome
from .session import BoardSession, SessionState
from .server import BulletinBoardServer, ServerStats

__all__ = [
    "SharedBoard",
    "Note",
    "Pin",
    "Outcome",
    "BoardSession",
    "SessionState",
    "BulletinBoardServer",
    "ServerStats",
]
