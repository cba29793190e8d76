"""TOML configuration loader.

Reads ``migrator.toml`` into a ``MigratorConfig``.  Source passwords may be
left out of the file and supplied through the environment as
``SECURE_MIGRATOR_<NAME>_PASSWORD`` (name upper-cased, dashes replaced by
underscores).

Example migrator.toml:

    [settings]
    table_limit = 50
    batch_size = 500

    [sources.crm]
    type = "postgresql"
    host = "localhost"
    port = 5432
    database = "crm"
    user = "reader"

    [targets.archive]
    uri = "mongodb://localhost:27017"
    database_name = "crm_archive"
"""

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from secure_migrator.config.models import MigratorConfig
from secure_migrator.errors import ConfigValidationError

DEFAULT_CONFIG_FILE = "migrator.toml"
PASSWORD_ENV_TEMPLATE = "SECURE_MIGRATOR_{name}_PASSWORD"


def first_error_field(exc: ValidationError) -> str:
    """Dotted location of the first error in a pydantic ``ValidationError``."""
    errors = exc.errors()
    if not errors:
        return ""
    return ".".join(str(part) for part in errors[0]["loc"])


def password_env_var(source_name: str) -> str:
    """Environment variable consulted for a source's password."""
    return PASSWORD_ENV_TEMPLATE.format(
        name=source_name.upper().replace("-", "_")
    )


def load_config(config_path: Path | None = None) -> MigratorConfig:
    """Load configuration from a TOML file.

    Args:
        config_path: Path to the TOML file (default: ``./migrator.toml``).

    Returns:
        ``MigratorConfig`` with settings, storage, sources and targets.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ConfigValidationError: If the file content is invalid.
    """
    if config_path is None:
        config_path = Path.cwd() / DEFAULT_CONFIG_FILE

    if not config_path.exists():
        raise FileNotFoundError(
            f"Migrator config not found: {config_path}\n"
            f"Create {DEFAULT_CONFIG_FILE} with [settings], [sources.<name>] "
            f"and [targets.<name>] sections."
        )

    with open(config_path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigValidationError(f"Invalid TOML in {config_path}: {e}")

    # Fill in source passwords from the environment
    sources: dict[str, Any] = data.get("sources", {})
    for name, source_data in sources.items():
        if "password" not in source_data:
            env_password = os.environ.get(password_env_var(name))
            if env_password is not None:
                source_data["password"] = env_password

    try:
        return MigratorConfig(**data)
    except ValidationError as e:
        field = first_error_field(e)
        raise ConfigValidationError(
            f"Invalid configuration field '{field}': {e.errors()[0]['msg']}",
            field=field,
        )
