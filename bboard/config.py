"""
BBoard Configuration Module

Handles loading, validation, and management of configuration settings.
"""

import sys
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

# Use tomllib for Python 3.11+, tomli for earlier versions
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


class ConfigError(Exception):
    """Raised when a configuration file cannot be mapped onto Config."""


@dataclass
class ServerConfig:
    """Network listener settings."""
    host: str = "0.0.0.0"
    port: int = 4554
    max_line_length: int = 65536
    stats_interval_seconds: int = 300


@dataclass
class BoardConfig:
    """Board geometry and palette, fixed for the lifetime of the server."""
    board_width: int = 200
    board_height: int = 100
    note_width: int = 20
    note_height: int = 10
    colors: list[str] = field(default_factory=lambda: ["red", "green", "blue"])

    def __post_init__(self):
        # Palette is always stored lowercase
        self.colors = [c.lower() for c in self.colors]

    def is_valid_color(self, color: str) -> bool:
        """Check a color against the palette (case-insensitive)."""
        return color.lower() in self.colors


@dataclass
class LoggingConfig:
    """Logging settings."""
    level: str = "INFO"
    file: str = ""
    max_size_mb: int = 10
    backup_count: int = 3


@dataclass
class Config:
    """Main configuration container."""
    server: ServerConfig = field(default_factory=ServerConfig)
    board: BoardConfig = field(default_factory=BoardConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []

        # Server validation
        if not 0 <= self.server.port <= 65535:
            errors.append("server.port must be between 0 and 65535")
        if self.server.max_line_length <= 0:
            errors.append("server.max_line_length must be positive")

        # Board validation
        board = self.board
        for name in ("board_width", "board_height", "note_width", "note_height"):
            if getattr(board, name) <= 0:
                errors.append(f"board.{name} must be positive")

        if board.note_width > board.board_width or board.note_height > board.board_height:
            errors.append("board note size must fit within the board")

        if not board.colors:
            errors.append("board.colors must contain at least one color")
        elif len(set(board.colors)) != len(board.colors):
            errors.append("board.colors must not contain duplicates")

        # Logging validation
        if self.logging.level.upper() not in VALID_LOG_LEVELS:
            errors.append(f"logging.level must be one of: {VALID_LOG_LEVELS}")

        return errors

    def save(self, path: Path):
        """Save configuration to TOML file."""
        import toml  # For writing

        data = self._to_dict()

        with open(path, "w") as f:
            toml.dump(data, f)

    def _to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary for serialization."""
        from dataclasses import asdict
        return asdict(self)


def _check_value(section: str, key: str, expected, value: Any):
    """Raise ConfigError unless value matches the field annotation."""
    if expected is int:
        ok = isinstance(value, int) and not isinstance(value, bool)
    elif expected is str:
        ok = isinstance(value, str)
    else:
        # list[str]
        ok = isinstance(value, list) and all(isinstance(v, str) for v in value)

    if not ok:
        type_name = getattr(expected, "__name__", expected)
        raise ConfigError(f"Invalid value in [{section}]: {key} must be {type_name}, got {value!r}")


def _build_section(cls, name: str, data: Any):
    """Instantiate a config section dataclass from a TOML table."""
    if not isinstance(data, dict):
        raise ConfigError(f"[{name}] must be a table")

    types = {f.name: f.type for f in fields(cls)}
    unknown = sorted(set(data) - set(types))
    if unknown:
        raise ConfigError(f"Unknown key(s) in [{name}]: {', '.join(unknown)}")

    for key, value in data.items():
        _check_value(name, key, types[key], value)

    try:
        return cls(**data)
    except (TypeError, AttributeError) as e:
        raise ConfigError(f"Invalid value in [{name}]: {e}") from e


def load_config(path: Path) -> Config:
    """Load configuration from TOML file."""
    config = Config()

    if not path.exists():
        return config

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e

    # Map TOML sections to config dataclasses
    if "server" in data:
        config.server = _build_section(ServerConfig, "server", data["server"])

    if "board" in data:
        config.board = _build_section(BoardConfig, "board", data["board"])

    if "logging" in data:
        config.logging = _build_section(LoggingConfig, "logging", data["logging"])

    return config


def create_default_config(path: Path):
    """Create a default configuration file."""
    config = Config()
    config.save(path)
