"""Application configuration settings."""

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class _EnvFirstSettings(BaseSettings):
    """Settings base where environment variables win over explicit values."""

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return env_settings, init_settings, dotenv_settings, file_secret_settings


class LayoutConfig(_EnvFirstSettings):
    """Where installed toolchains and their registrations live."""

    model_config = SettingsConfigDict(env_prefix="GCC_STAGE_LAYOUT_")

    install_root: str = Field(
        default="/opt", description="Parent directory of default prefixes"
    )
    name_prefix: str = Field(
        default="gcc", description="Name stem for prefixes and registration files"
    )
    ld_conf_dir: str = Field(
        default="/etc/ld.so.conf.d", description="Dynamic linker config directory"
    )
    profile_dir: str = Field(
        default="/etc/profile.d", description="Login shell fragment directory"
    )
    bin_dirs: List[str] = Field(
        default_factory=lambda: ["/usr/bin", "/usr/local/bin"],
        min_length=1,
        description="Symlink directories in priority order",
    )


class CommandsConfig(_EnvFirstSettings):
    """External commands used by the installer."""

    model_config = SettingsConfigDict(env_prefix="GCC_STAGE_COMMANDS_")

    escalation: str = Field(
        default="sudo", description="Privilege escalation wrapper"
    )
    ldconfig: List[str] = Field(
        default_factory=lambda: ["ldconfig"],
        description="Dynamic linker cache refresh command",
    )
    version_timeout: int = Field(
        default=10, description="Timeout in seconds for compiler version queries"
    )


class LoggingConfig(_EnvFirstSettings):
    """Logging configuration settings."""

    model_config = SettingsConfigDict(env_prefix="GCC_STAGE_LOG_")

    level: str = Field(default="WARNING", description="Log level")
    file_path: Optional[str] = Field(default=None, description="Log file path")
    json_format: bool = Field(default=False, description="Use JSON log format")


class Settings(_EnvFirstSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(env_prefix="GCC_STAGE_")

    layout: LayoutConfig = Field(default_factory=LayoutConfig)
    commands: CommandsConfig = Field(default_factory=CommandsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def get_log_file_path(self) -> Optional[Path]:
        """Get the log file path if configured."""
        if self.logging.file_path:
            return Path(self.logging.file_path)
        return None


def _read_config_file(config_file: str) -> Dict[str, Any]:
    try:
        with open(config_file, "r") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigurationError(
            "Cannot read configuration file", config_file, [e.strerror or str(e)]
        )
    except yaml.YAMLError as e:
        raise ConfigurationError("Invalid configuration file", config_file, [str(e)])

    if not isinstance(data, dict):
        raise ConfigurationError("Configuration file must contain a mapping", config_file)
    return data


def load_settings(config_file: Optional[str] = None) -> Settings:
    """Build settings from an optional YAML file, with environment overrides.

    Args:
        config_file: Path to a YAML file with ``layout``, ``commands`` and
            ``logging`` sections

    Returns:
        Fully resolved settings

    Raises:
        ConfigurationError: If the file cannot be read or fails validation
    """
    data = _read_config_file(config_file) if config_file else {}

    unknown = set(data) - {"layout", "commands", "logging"}
    if unknown:
        raise ConfigurationError(
            "Unknown configuration sections", config_file, sorted(unknown)
        )

    try:
        return Settings(
            layout=LayoutConfig(**(data.get("layout") or {})),
            commands=CommandsConfig(**(data.get("commands") or {})),
            logging=LoggingConfig(**(data.get("logging") or {})),
        )
    except ValidationError as e:
        raise ConfigurationError(
            "Configuration validation failed",
            config_file,
            [
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                for err in e.errors()
            ],
        )
