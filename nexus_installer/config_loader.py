# nexus_installer/config_loader.py
# -*- coding: utf-8 -*-
"""
Configuration loader for the installer.

Loads the `install.env` file into an `InstallSettings` record, validates the
keys the enabled stages need, and renders/persists a record back to the file
so later runs can use --non-interactive.
"""

import datetime
import logging
import shlex
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values
from pydantic import ValidationError

from common.command_utils import CommandOutcome, CommandRunner
from common.file_utils import render_assignments
from nexus_installer import config
from nexus_installer.config_models import InstallSettings, missing_required_keys
from nexus_installer.errors import (
    EssentialStepError,
    MissingConfigurationError,
    PreconditionError,
)
from nexus_installer.profiles import StageFlags

module_logger = logging.getLogger(__name__)


def load_install_settings(
    env_file_path: Path = config.ENV_FILE_PATH,
    current_logger: Optional[logging.Logger] = None,
) -> InstallSettings:
    """
    Read the configuration record from a `KEY="value"` file.

    Raises:
        PreconditionError: If the file does not exist or a value does not
            parse (e.g. a non-numeric DB_PORT).
    """
    logger_to_use = current_logger if current_logger else module_logger
    path = Path(env_file_path)
    if not path.is_file():
        raise PreconditionError(
            f"{path} not found. Create it (or run without --non-interactive) and re-run."
        )

    # Values are literal; ${VAR} is never expanded.
    file_values = {
        key.lower(): value
        for key, value in dotenv_values(path, interpolate=False, encoding="utf-8").items()
        if value is not None
    }
    try:
        settings = InstallSettings(_env_file=None, **file_values)
    except ValidationError as e:
        raise PreconditionError(f"Invalid configuration in {path}: {e}") from e

    logger_to_use.info(f"Loaded configuration from {path}")
    if settings.model_extra:
        logger_to_use.debug(
            f"Keeping unrecognised keys: {', '.join(k.upper() for k in settings.model_extra)}"
        )
    return settings


def validate_required_settings(
    settings: InstallSettings,
    flags: StageFlags,
    source: Optional[str] = None,
) -> None:
    """
    Raises:
        MissingConfigurationError: If a key consumed by an enabled stage is
            empty and has no default.
    """
    missing = missing_required_keys(flags, settings)
    if missing:
        raise MissingConfigurationError(missing, source)


def render_settings_file(settings: InstallSettings) -> str:
    header = (
        f"# Nexus installer configuration (v{config.SCRIPT_VERSION})\n"
        f"# Written {datetime.datetime.now().isoformat(timespec='seconds')}\n"
    )
    return header + render_assignments(settings.as_file_values())


def persist_install_settings(
    settings: InstallSettings,
    runner: CommandRunner,
    env_file_path: Path = config.ENV_FILE_PATH,
    current_logger: Optional[logging.Logger] = None,
) -> CommandOutcome:
    """
    Write the record to `env_file_path` (mode 600) through the runner, so a
    dry run only prints the commands.

    Raises:
        EssentialStepError: If the file cannot be written.
    """
    logger_to_use = current_logger if current_logger else module_logger
    target = shlex.quote(str(env_file_path))
    outcome = runner.execute(
        f"tee {target} > /dev/null",
        cmd_input=render_settings_file(settings),
    )
    if outcome.ok:
        outcome = runner.execute(f"chmod 600 {target}")
    if not outcome.ok:
        raise EssentialStepError("config.persist", outcome)
    logger_to_use.info(f"Configuration saved to {env_file_path}")
    return outcome
