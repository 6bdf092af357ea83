"""Manage configuration settings for the SchoolAttend application."""

import argparse
import dataclasses
import enum
import logging
import pathlib
import shutil
import tomllib
from typing import Optional

from rich import logging as rich_logging


DB_FILE_NAME = "schoolattend.db"
CONFIG_FILE_NAME = "schoolattend.toml"
DEFAULT_SCHOOL_NAME = "مدرستي"


class ConfigError(Exception):
    """Errors when setting or accessing settings."""

    class ErrorType(enum.Enum):
        NOT_A_FILE = 1
        PATH_DOES_NOT_EXIST = 2
        BAD_VALUE = 3

    error_type: ErrorType

    def __init__(self, message: str, error_type: ErrorType) -> None:
        """Set error type."""
        super().__init__(message)
        self.error_type = error_type


@dataclasses.dataclass
class Settings:
    """Configuration data for the schoolattend application.

    school_name is only used for display. It is never written to the
    attendance database or to backup files.
    """

    db_path: Optional[pathlib.Path] = None
    config_path: Optional[pathlib.Path] = None
    backup_dir: Optional[pathlib.Path] = None
    school_name: str = DEFAULT_SCHOOL_NAME
    log_level: str = "WARNING"

    def update_from_args(self, args: argparse.Namespace) -> None:
        """Read settings."""
        db_path = getattr(args, "db_path", None)
        config_path = getattr(args, "config_path", None)
        self.db_path = self._convert_path_to_absolute(
            db_path if db_path is not None else DB_FILE_NAME
        )
        self.config_path = self._get_full_path(config_path, CONFIG_FILE_NAME)
        if config_path is not None and self.config_path is None:
            raise ConfigError(
                f"Config file {config_path} does not exist.",
                ConfigError.ErrorType.PATH_DOES_NOT_EXIST,
            )
        if self.config_path is not None:
            self._read_config_file()
        if db_path is not None:
            # Command line takes precedence over the config file.
            self.db_path = self._convert_path_to_absolute(db_path)

    @staticmethod
    def _convert_path_to_absolute(path: pathlib.Path | str) -> pathlib.Path:
        """Convert relative paths to absolute paths."""
        if isinstance(path, str):
            path = pathlib.Path(path)
        return path if path.is_absolute() else pathlib.Path.cwd() / path

    @staticmethod
    def _get_full_path(
        path: Optional[pathlib.Path], default_file_name: str
    ) -> Optional[pathlib.Path]:
        """Convert path arg to full filesystem path.

        If path is None, looks for file in current working directory. Otherwise
        converts relative paths to absolute paths. Returns None if path does not
        point to an existing file.
        """
        cwd = pathlib.Path.cwd()
        if path is None:
            full_path = cwd / default_file_name
        elif path.is_absolute():
            full_path = path
        else:
            full_path = cwd / path
        if not full_path.is_file():
            return None
        return full_path

    def _read_config_file(self) -> None:
        """Read TOML configuration file."""
        if self.config_path is None:
            return
        app_settings = dataclasses.asdict(self)
        with open(self.config_path, "rb") as toml_file:
            file_settings = tomllib.load(toml_file)
        for setting_name, value in file_settings.items():
            if setting_name not in app_settings:
                continue
            if isinstance(value, str) and value.lower() in ["", "none", "null"]:
                value = None
            if setting_name in ("db_path", "backup_dir") and value is not None:
                value = self._convert_path_to_absolute(value)
            if setting_name == "log_level" and value is not None:
                value = str(value).upper()
                if value not in logging.getLevelNamesMapping():
                    raise ConfigError(
                        f"Unknown log level {value} in {self.config_path}.",
                        ConfigError.ErrorType.BAD_VALUE,
                    )
            if value is None and setting_name == "school_name":
                value = DEFAULT_SCHOOL_NAME
            setattr(self, setting_name, value)

    def create_new_config_file(self, config_path: pathlib.Path) -> None:
        """Create a new configuration file with default settings."""
        if not config_path.exists():
            shutil.copy(
                pathlib.Path(__file__).parent / "example-config.toml", config_path
            )


def configure_logging(level: str | int = "WARNING") -> None:
    """Send log messages to the terminal through rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[rich_logging.RichHandler(rich_tracebacks=True)],
        force=True,
    )


# Module-level singleton. Modules that need settings import schoolattend.config
# and read config.settings.
settings = Settings()
