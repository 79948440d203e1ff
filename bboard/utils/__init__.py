"""BBoard Utilities Module."""

from .formatting import format_welcome, format_note, format_pin, format_uptime

__all__ = ["format_welcome", "format_note", "format_pin", "format_uptime"]
