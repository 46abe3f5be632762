"""Define the configuration of the program."""

import logging
from datetime import timedelta
from pathlib import Path
from typing import Optional

from goodconf import GoodConf
from pydantic import Field, SecretStr, ValidationError, field_validator

from .exceptions import ConfigurationError

log = logging.getLogger(__name__)


class Settings(GoodConf):
    """Configure record-guard.

    Values are read from the environment variables prefixed with `RECORD_GUARD_`
    or from the YAML or JSON file pointed by `RECORD_GUARD_CONFIG`.
    """

    encryption_key: SecretStr = Field(
        description="Secret used to encrypt the sensitive fields of every record."
    )
    max_attempts: int = Field(
        default=3, ge=1, description="Failed passcode attempts before a lockout."
    )
    lockout_cooldown: int = Field(
        default=300, ge=0, description="Seconds a lockout lasts."
    )
    unlock_ttl: int = Field(
        default=0,
        ge=0,
        description="Seconds a successful unlock is remembered, 0 to disable it.",
    )
    store_path: Path = Field(
        default=Path("~/.local/share/record-guard/store.yaml"),
        description="File where users, groups, records and attempts are kept.",
    )

    model_config = {
        "env_prefix": "RECORD_GUARD_",
        "file_env_var": "RECORD_GUARD_CONFIG",
    }

    @field_validator("encryption_key")
    @classmethod
    def check_encryption_key(cls, key: SecretStr) -> SecretStr:
        """Refuse empty keys."""
        if not key.get_secret_value().strip():
            raise ValueError("The encryption key can't be empty")
        return key

    @property
    def cooldown(self) -> timedelta:
        """Return the duration of a lockout."""
        return timedelta(seconds=self.lockout_cooldown)

    @property
    def unlock_duration(self) -> timedelta:
        """Return the time an unlock is remembered."""
        return timedelta(seconds=self.unlock_ttl)


def load_settings(config_file: Optional[Path] = None) -> Settings:
    """Load the program configuration.

    Args:
        config_file: path to a configuration file, if None it's taken from the
            `RECORD_GUARD_CONFIG` environment variable, if set.

    Raises:
        ConfigurationError: if the configuration is missing or invalid, for
            example when there is no encryption key.
    """
    settings = Settings()
    try:
        settings.load(str(config_file.expanduser()) if config_file else None)
    except ValidationError as error:
        # The message is built from the field names only, the errors may contain
        # the values of the secrets.
        fields = ", ".join(
            ".".join(str(part) for part in detail["loc"]) for detail in error.errors()
        )
        raise ConfigurationError(f"Invalid configuration for: {fields}") from None
    log.debug(f"Loaded configuration, store at {settings.store_path}")
    return settings
