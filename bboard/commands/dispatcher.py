"""
BBoard Command Dispatcher

Turns one client line into a board operation and formats the reply lines.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..core.board import Outcome, SharedBoard
from ..utils.formatting import format_note, format_pin

logger = logging.getLogger(__name__)

_INT_RE = re.compile(r"^[+-]?[0-9]+$")
_TOKEN_RE = re.compile(r"\S+")
MAX_COORDINATE = 2**31 - 1

OUTCOME_REPLIES = {
    Outcome.POSTED: "OK NOTE_POSTED",
    Outcome.OUT_OF_BOUNDS: "ERROR OUT_OF_BOUNDS Note exceeds board boundaries",
    Outcome.UNSUPPORTED_COLOR: "ERROR COLOR_NOT_SUPPORTED {color}",
    Outcome.COMPLETE_OVERLAP: "ERROR COMPLETE_OVERLAP Note overlaps an existing note entirely",
    Outcome.PIN_ADDED: "OK PIN_ADDED",
    Outcome.PIN_REMOVED: "OK PIN_REMOVED",
    Outcome.NO_NOTE_AT_COORDINATE: "ERROR NO_NOTE_AT_COORDINATE",
    Outcome.PIN_NOT_FOUND: "ERROR PIN_NOT_FOUND",
    Outcome.SHAKE_COMPLETE: "OK SHAKE_COMPLETE",
    Outcome.CLEAR_COMPLETE: "OK CLEAR_COMPLETE",
}


class CommandFormatError(Exception):
    """Malformed command; reported as ERROR INVALID_FORMAT."""


@dataclass
class Reply:
    """Reply lines for one command, in send order."""
    lines: list[str] = field(default_factory=list)
    close: bool = False


def parse_non_negative_int(token: str) -> Optional[int]:
    """Parse a non-negative integer token, or return None."""
    if not _INT_RE.match(token):
        return None
    value = int(token)
    return value if 0 <= value <= MAX_COORDINATE else None


class CommandDispatcher:
    """
    Dispatches protocol commands to handlers.

    Verbs are case-insensitive. One dispatcher serves one connection; the
    board behind it is shared.
    """

    def __init__(self, board: SharedBoard):
        """
        Initialize dispatcher.

        Args:
            board: Shared board every session operates on
        """
        self.board = board

        # Command registry: verb -> (handler_func, usage)
        self._commands: dict[str, tuple[Callable[[str, list[str]], Reply], str]] = {}

        self._register_builtins()

    def _register_builtins(self):
        """Register protocol commands."""
        self.register("POST", self.cmd_post, "POST <x> <y> <color> <message>")
        self.register("PIN", self.cmd_pin, "PIN <x> <y>")
        self.register("UNPIN", self.cmd_unpin, "UNPIN <x> <y>")
        self.register("SHAKE", self.cmd_shake, "SHAKE")
        self.register("CLEAR", self.cmd_clear, "CLEAR")
        self.register(
            "GET", self.cmd_get,
            "GET PINS | GET [color=<c>] [contains=<x> <y>] [refersTo=<text>]"
        )
        self.register("DISCONNECT", self.cmd_disconnect, "DISCONNECT")

    def register(self, verb: str, handler, usage: str):
        """Register a command handler."""
        self._commands[verb.upper()] = (handler, usage)

    def dispatch(self, line: str) -> Reply:
        """
        Dispatch one non-blank line.

        Args:
            line: Raw line from the client

        Returns:
            Reply to send back to the same client
        """
        line = line.strip()
        tokens = line.split()
        if not tokens:
            return Reply()

        verb = tokens[0].upper()
        if verb not in self._commands:
            return Reply([_format_error("Unknown command")])

        handler, usage = self._commands[verb]

        try:
            return handler(line, tokens)
        except CommandFormatError as e:
            logger.debug(f"Format error for {verb}: {e} (usage: {usage})")
            return Reply([_format_error(str(e))])

    # === Parsing helpers ===

    def _coordinates(self, verb: str, x_token: str, y_token: str) -> tuple[int, int]:
        x = parse_non_negative_int(x_token)
        y = parse_non_negative_int(y_token)
        if x is None or y is None:
            raise CommandFormatError(f"{verb} requires non-negative integer coordinates")
        return x, y

    def _require_no_args(self, verb: str, tokens: list[str]):
        if len(tokens) != 1:
            raise CommandFormatError(f"{verb} takes no arguments")

    def _render(self, outcome: Outcome, **values) -> Reply:
        return Reply([OUTCOME_REPLIES[outcome].format(**values)])

    # === Command Handlers ===

    def cmd_post(self, line: str, tokens: list[str]) -> Reply:
        """POST <x> <y> <color> <message...>"""
        parts = line.split(maxsplit=4)
        if len(parts) < 5 or not parts[4].strip():
            raise CommandFormatError("POST requires coordinates, color, and message")

        x, y = self._coordinates("POST", parts[1], parts[2])
        color = parts[3].lower()

        return self._render(self.board.post(x, y, color, parts[4]), color=color)

    def cmd_pin(self, line: str, tokens: list[str]) -> Reply:
        """PIN <x> <y>"""
        if len(tokens) != 3:
            raise CommandFormatError("PIN requires x and y")

        x, y = self._coordinates("PIN", tokens[1], tokens[2])
        return self._render(self.board.pin(x, y))

    def cmd_unpin(self, line: str, tokens: list[str]) -> Reply:
        """UNPIN <x> <y>"""
        if len(tokens) != 3:
            raise CommandFormatError("UNPIN requires x and y")

        x, y = self._coordinates("UNPIN", tokens[1], tokens[2])
        return self._render(self.board.unpin(x, y))

    def cmd_shake(self, line: str, tokens: list[str]) -> Reply:
        self._require_no_args("SHAKE", tokens)
        return self._render(self.board.shake())

    def cmd_clear(self, line: str, tokens: list[str]) -> Reply:
        self._require_no_args("CLEAR", tokens)
        return self._render(self.board.clear())

    def cmd_get(self, line: str, tokens: list[str]) -> Reply:
        """
        GET PINS, or GET with optional filters.

        `contains=<x>` takes the following token as y. `refersTo=` takes the
        rest of the line, spacing included, and ends filter parsing.
        """
        if len(tokens) == 2 and tokens[1].upper() == "PINS":
            pins = self.board.snapshot_pins()
            return Reply([f"OK {len(pins)}"] + [format_pin(p) for p in pins])

        color = None
        contains = None
        refers_to = None

        matches = list(_TOKEN_RE.finditer(line))
        i = 1
        while i < len(matches):
            token = matches[i].group()

            if token.startswith("color="):
                color = token[len("color="):].lower()
                if not color:
                    raise CommandFormatError("GET color requires a value")

            elif token.startswith("contains="):
                if i + 1 >= len(matches):
                    raise CommandFormatError("GET contains requires x and y")
                i += 1
                contains = self._coordinates(
                    "GET contains", token[len("contains="):], matches[i].group()
                )

            elif token.startswith("refersTo="):
                refers_to = line[matches[i].start() + len("refersTo="):]
                break

            else:
                raise CommandFormatError("GET has invalid filter format")

            i += 1

        notes = self.board.filtered_notes(color, contains, refers_to)
        return Reply(
            [f"OK {len(notes)}"] + [format_note(n, pinned) for n, pinned in notes]
        )

    def cmd_disconnect(self, line: str, tokens: list[str]) -> Reply:
        return Reply(["OK BYE"], close=True)


def _format_error(detail: str) -> str:
    return f"ERROR INVALID_FORMAT {detail}"
