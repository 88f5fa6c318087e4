"""TOML configuration loader."""

import tomllib
from pathlib import Path

from pydantic import ValidationError

from schemagen.config.models import Configuration
from schemagen.errors import InvalidOptionError

DEFAULT_CONFIG_NAME = "schemagen.toml"


def load_config(config_path: Path | None = None) -> Configuration:
    """Load schemagen configuration from a TOML file.

    Sections not present in the file keep their defaults.  The
    ``[packages]`` table, when present, replaces the default package set
    entirely.

    Args:
        config_path: Path to schemagen.toml (default: ./schemagen.toml)

    Returns:
        Immutable ``Configuration``

    Raises:
        FileNotFoundError: If config file doesn't exist
        InvalidOptionError: If the file is not valid TOML or a value is invalid
    """
    if config_path is None:
        config_path = Path.cwd() / DEFAULT_CONFIG_NAME

    if not config_path.exists():
        raise FileNotFoundError(
            f"schemagen config not found: {config_path}\n"
            f"Create a {DEFAULT_CONFIG_NAME} with at least one [profiles.<name>] table."
        )

    with open(config_path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise InvalidOptionError(
                f"Invalid TOML in {config_path.name}: {e}", entity=str(config_path)
            ) from e

    return parse_config(data, source=str(config_path))


def parse_config(data: dict, source: str = "<dict>") -> Configuration:
    """Build a ``Configuration`` from already-parsed TOML data.

    Raises:
        InvalidOptionError: If a value fails validation.  The entity is the
            dotted location of the first offending value.
    """
    try:
        return Configuration.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise InvalidOptionError(
            f"Invalid configuration value at '{location}' in {source}: {first['msg']}",
            entity=location,
        ) from e
