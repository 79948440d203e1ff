"""
BBoard Formatting Utilities

Helper functions for formatting protocol lines and log output.
"""

import time

from ..config import BoardConfig


def format_welcome(config: BoardConfig) -> str:
    """
    Format the handshake line sent to every new client.

    Returns:
        Line like "WELCOME 200 100 20 10 red green blue"
    """
    parts = [
        "WELCOME",
        str(config.board_width),
        str(config.board_height),
        str(config.note_width),
        str(config.note_height),
    ]
    parts.extend(c.lower() for c in config.colors)
    return " ".join(parts)


def format_note(note, pinned: bool) -> str:
    """Format a note line for GET replies."""
    return (
        f"NOTE {note.x} {note.y} {note.color} {note.message} "
        f"PINNED={str(pinned).lower()}"
    )


def format_pin(pin) -> str:
    """Format a pin line for GET PINS replies."""
    return f"PIN {pin.x} {pin.y}"


def format_uptime(start_time: float) -> str:
    """
    Format uptime from start timestamp.

    Args:
        start_time: Unix timestamp of start

    Returns:
        Formatted string like "2d 5h 30m"
    """
    if not start_time:
        return "Unknown"

    elapsed = int(time.time() - start_time)

    days = elapsed // 86400
    hours = (elapsed % 86400) // 3600
    minutes = (elapsed % 3600) // 60

    parts = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0 or days > 0:
        parts.append(f"{hours}h")
    parts.append(f"{minutes}m")

    return " ".join(parts)
