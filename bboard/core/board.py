"""
BBoard Shared Board

The single in-memory board shared by every connected client. Owns all
note and pin data and enforces placement, pin and filter rules. No I/O.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..config import BoardConfig

logger = logging.getLogger(__name__)


class Outcome(Enum):
    """Result of a board operation."""
    POSTED = "posted"
    OUT_OF_BOUNDS = "out_of_bounds"
    UNSUPPORTED_COLOR = "unsupported_color"
    COMPLETE_OVERLAP = "complete_overlap"
    PIN_ADDED = "pin_added"
    PIN_REMOVED = "pin_removed"
    NO_NOTE_AT_COORDINATE = "no_note_at_coordinate"
    PIN_NOT_FOUND = "pin_not_found"
    SHAKE_COMPLETE = "shake_complete"
    CLEAR_COMPLETE = "clear_complete"


@dataclass(frozen=True)
class Note:
    """A note placed on the board. Color is stored lowercase."""
    x: int
    y: int
    color: str
    message: str


@dataclass(frozen=True)
class Pin:
    """A pin, identified only by its coordinates."""
    x: int
    y: int


class SharedBoard:
    """
    Thread-safe bulletin board state.

    Notes and pins are guarded by one lock: pin validity depends on the
    notes, so every public operation runs in a single critical section.
    Whether a note is pinned is derived from the pins on every query.
    """

    def __init__(self, config: BoardConfig):
        """
        Initialize an empty board.

        Args:
            config: Board geometry and palette (read-only)
        """
        self.config = config
        self._lock = threading.Lock()
        self._notes: list[Note] = []
        # dict as an insertion-ordered set
        self._pins: dict[Pin, None] = {}

    # === Geometry helpers (caller holds the lock) ===

    def _fits_on_board(self, x: int, y: int) -> bool:
        c = self.config
        return (
            x >= 0 and y >= 0
            and x + c.note_width <= c.board_width
            and y + c.note_height <= c.board_height
        )

    def _contains(self, note: Note, px: int, py: int) -> bool:
        """Check if a point lies inside a note's rectangle."""
        return (
            note.x <= px < note.x + self.config.note_width
            and note.y <= py < note.y + self.config.note_height
        )

    def _any_note_contains(self, px: int, py: int) -> bool:
        return any(self._contains(n, px, py) for n in self._notes)

    def _is_pinned(self, note: Note) -> bool:
        return any(self._contains(note, p.x, p.y) for p in self._pins)

    # === Mutations ===

    def post(self, x: int, y: int, color: str, message: str) -> Outcome:
        """
        Post a new note.

        Checks board containment, then the palette, then complete overlap.

        Returns:
            POSTED, OUT_OF_BOUNDS, UNSUPPORTED_COLOR or COMPLETE_OVERLAP
        """
        color = color.lower()

        with self._lock:
            if not self._fits_on_board(x, y):
                return Outcome.OUT_OF_BOUNDS

            if not self.config.is_valid_color(color):
                return Outcome.UNSUPPORTED_COLOR

            if any(n.x == x and n.y == y for n in self._notes):
                return Outcome.COMPLETE_OVERLAP

            self._notes.append(Note(x, y, color, message))

        logger.debug(f"Note posted at ({x}, {y}) color={color}")
        return Outcome.POSTED

    def pin(self, x: int, y: int) -> Outcome:
        """Pin a point. Pinning an already-pinned point succeeds again."""
        with self._lock:
            if not self._any_note_contains(x, y):
                return Outcome.NO_NOTE_AT_COORDINATE

            self._pins[Pin(x, y)] = None

        return Outcome.PIN_ADDED

    def unpin(self, x: int, y: int) -> Outcome:
        """Remove the pin at a point that some note covers."""
        with self._lock:
            if not self._any_note_contains(x, y):
                return Outcome.NO_NOTE_AT_COORDINATE

            pin = Pin(x, y)
            if pin not in self._pins:
                return Outcome.PIN_NOT_FOUND

            del self._pins[pin]

        return Outcome.PIN_REMOVED

    def shake(self) -> Outcome:
        """Remove unpinned notes, then pins that no longer land on a note."""
        with self._lock:
            before = len(self._notes), len(self._pins)

            self._notes = [n for n in self._notes if self._is_pinned(n)]
            self._pins = {
                p: None for p in self._pins
                if self._any_note_contains(p.x, p.y)
            }

            removed_notes = before[0] - len(self._notes)
            removed_pins = before[1] - len(self._pins)

        logger.debug(f"Shake removed {removed_notes} note(s), {removed_pins} pin(s)")
        return Outcome.SHAKE_COMPLETE

    def clear(self) -> Outcome:
        """Remove every note and pin."""
        with self._lock:
            self._notes.clear()
            self._pins.clear()

        logger.debug("Board cleared")
        return Outcome.CLEAR_COMPLETE

    # === Queries ===

    def snapshot_pins(self) -> list[Pin]:
        """Return a copy of the current pins in insertion order."""
        with self._lock:
            return list(self._pins)

    def filtered_notes(
        self,
        color: Optional[str] = None,
        contains: Optional[tuple[int, int]] = None,
        refers_to: Optional[str] = None
    ) -> list[tuple[Note, bool]]:
        """
        Return notes matching every supplied filter, in posting order.

        Args:
            color: Exact color match (case-insensitive)
            contains: Point that must lie inside the note
            refers_to: Substring of the message (case-sensitive)

        Returns:
            List of (note, pinned) pairs taken from one snapshot
        """
        if color is not None:
            color = color.lower()

        with self._lock:
            result = []
            for note in self._notes:
                if color is not None and note.color != color:
                    continue
                if contains is not None and not self._contains(note, *contains):
                    continue
                if refers_to is not None and refers_to not in note.message:
                    continue
                result.append((note, self._is_pinned(note)))

        return result

    def counts(self) -> tuple[int, int]:
        """Return (note count, pin count)."""
        with self._lock:
            return len(self._notes), len(self._pins)
