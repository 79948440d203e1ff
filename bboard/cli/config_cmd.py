"""
BBoard Configuration Command

Non-interactive configuration interface: show, validate, set, init.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def run_config(args) -> int:
    """
    Run configuration command.

    Args:
        args: Parsed command line arguments

    Returns:
        Exit code
    """
    from ..config import load_config, create_default_config, ConfigError

    config_path = getattr(args, 'config', Path('config.toml'))

    if getattr(args, 'init', False):
        if config_path.exists():
            print(f"Config file already exists: {config_path}")
            return 1
        create_default_config(config_path)
        print(f"Created default config: {config_path}")
        return 0

    try:
        config = load_config(config_path)
    except ConfigError as e:
        print(f"Configuration error: {e}")
        return 1

    if getattr(args, 'show', False):
        print(config_to_toml(config))
        return 0

    if getattr(args, 'validate', False):
        errors = config.validate()
        if errors:
            print("Configuration errors:")
            for err in errors:
                print(f"  - {err}")
            return 1
        print("Configuration is valid.")
        return 0

    if getattr(args, 'set', None):
        key, value = args.set
        return set_config_value(config, config_path, key, value)

    print("Nothing to do. Use --show, --validate, --set or --init.")
    return 1


def config_to_toml(config) -> str:
    """Convert config to TOML string representation."""
    import toml

    return "# BBoard Configuration\n\n" + toml.dumps(config._to_dict())


def set_config_value(config, config_path: Path, key: str, value: str) -> int:
    """Set a specific configuration value and save."""
    # Parse dotted key (e.g., "server.port")
    parts = key.split(".")
    obj = config

    for part in parts[:-1]:
        if hasattr(obj, part):
            obj = getattr(obj, part)
        else:
            print(f"Invalid config key: {key}")
            return 1

    final_key = parts[-1]
    if len(parts) < 2 or not hasattr(obj, final_key):
        print(f"Invalid config key: {key}")
        return 1

    # Convert value to appropriate type
    current = getattr(obj, final_key)
    try:
        if isinstance(current, bool):
            value = value.lower() in ('true', '1', 'yes')
        elif isinstance(current, int):
            value = int(value)
        elif isinstance(current, list):
            value = [v.strip().lower() for v in value.split(",") if v.strip()]
    except ValueError:
        print(f"Invalid value for {key}: {value}")
        return 1

    setattr(obj, final_key, value)

    errors = config.validate()
    if errors:
        print("Refusing to save invalid configuration:")
        for err in errors:
            print(f"  - {err}")
        return 1

    config.save(config_path)
    logger.info(f"Config updated: {key} = {value}")

    print(f"Set {key} = {value}")
    return 0
