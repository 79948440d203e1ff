"""BBoard Commands Module - Protocol command parsing and dispatch."""

from .dispatcher import CommandDispatcher, CommandFormatError, Reply

__all__ = ["CommandDispatcher", "CommandFormatError", "Reply"]
