# nexus_installer/cli_handler.py
# -*- coding: utf-8 -*-
"""
Handles Command Line Interface (CLI) interactions for the installer: the
interactive prompt flow, the confirmation summary and the configuration view.
"""

import getpass
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from common.command_utils import log_installer
from nexus_installer import config as static_config
from nexus_installer.config_models import SECRET_KEYS, InstallSettings
from nexus_installer.errors import UserAbortError
from nexus_installer.profiles import (
    DEFAULT_PROFILE,
    PROFILE_CHOICES,
    PROFILE_OVERRIDES,
    StageFlags,
    resolve_profile,
)

module_logger = logging.getLogger(__name__)

InputFunc = Callable[[str], str]

MASK = "********"


def coerce_yes_no(answer: Optional[str], default: bool = False) -> bool:
    """
    `y`/`yes` (any case) -> True, empty -> `default`, anything else -> False.
    """
    text = (answer or "").strip().lower()
    if not text:
        return default
    return text in ("y", "yes")


def coerce_profile_choice(answer: Optional[str]) -> Optional[str]:
    """
    Map a menu answer to a profile name: "" -> full, "1".."5" -> the menu
    entry, a profile name -> itself. Anything else -> None.
    """
    text = (answer or "").strip()
    if not text:
        return DEFAULT_PROFILE
    if text in PROFILE_CHOICES:
        return PROFILE_CHOICES[text]
    if text in PROFILE_OVERRIDES:
        return text
    return None


@dataclass(frozen=True)
class PromptSpec:
    key: str
    label: str
    applies: Callable[[StageFlags, Dict[str, Any]], bool] = lambda flags, values: True
    secret: bool = False
    yes_no: bool = False


def _backend(flags: StageFlags, values: Dict[str, Any]) -> bool:
    return flags.backend


def _wants_admin(flags: StageFlags, values: Dict[str, Any]) -> bool:
    return flags.admin_user and bool(values.get("create_admin_user"))


# Asked in this order, after the profile.
PROMPTS = (
    PromptSpec("domain", "Domain (FQDN)", lambda f, v: f.backend or f.nginx),
    PromptSpec("admin_email", "Admin / Certbot e-mail", lambda f, v: f.nginx or f.admin_user),
    PromptSpec("app_path", "Nexus AMS install path", _backend),
    PromptSpec("subs_path", "Subs install path", lambda f, v: f.subs),
    PromptSpec("php_version", "PHP version", _backend),
    PromptSpec("swap_size", "Swap file size"),
    PromptSpec("db_host", "Database host", lambda f, v: f.remote_database),
    PromptSpec("db_port", "Database port", lambda f, v: f.remote_database),
    PromptSpec("db_database", "Database name", lambda f, v: f.database or f.backend),
    PromptSpec("db_username", "Database user", lambda f, v: f.database or f.backend),
    PromptSpec("db_password", "Database password", lambda f, v: f.database or f.backend, secret=True),
    PromptSpec("db_user_host", "Host allowed to connect as the database user", lambda f, v: f.database),
    PromptSpec("pw_api_key", "Politics & War API key", _backend, secret=True),
    PromptSpec("pw_api_mutation_key", "Politics & War mutation key", _backend, secret=True),
    PromptSpec("nexus_api_token", "Nexus API token", lambda f, v: f.backend or f.subs, secret=True),
    PromptSpec("pw_alliance_id", "Alliance ID", _backend),
    PromptSpec("pw_api_token", "Subs Politics & War API token", lambda f, v: f.subs, secret=True),
    PromptSpec("nexus_api_url", "Nexus API URL for subs", lambda f, v: f.subs),
    PromptSpec("enable_snapshots", "Enable subs snapshots?", lambda f, v: f.subs, yes_no=True),
    PromptSpec("install_redis", "Install Redis for cache/queue/session?", _backend, yes_no=True),
    PromptSpec("create_admin_user", "Create an initial admin user?", lambda f, v: f.admin_user, yes_no=True),
    PromptSpec("admin_name", "Admin name", _wants_admin),
    PromptSpec("admin_password", "Admin password", _wants_admin, secret=True),
    PromptSpec("admin_nation_id", "Admin nation ID", _wants_admin),
    PromptSpec("admin_role_id", "Admin role ID", _wants_admin),
)


def _implied_app_url(domain: str) -> str:
    return f"https://{domain}" if domain else ""


def _implied_api_url(app_url: str) -> str:
    return f"{app_url.rstrip('/')}/api/v1" if app_url else ""


def prompt_install_settings(
    defaults: Optional[InstallSettings] = None,
    input_func: InputFunc = input,
    getpass_func: InputFunc = getpass.getpass,
    current_logger: Optional[logging.Logger] = None,
) -> InstallSettings:
    """
    Walk the prompts in order and build the configuration record. Empty input
    keeps the shown default. Prompts for stages the chosen profile disables
    are not asked; their keys keep the defaults.
    """
    logger_to_use = current_logger if current_logger else module_logger
    base = defaults if defaults is not None else InstallSettings()
    values: Dict[str, Any] = base.model_dump()

    menu = "\n".join(f"  {number}) {name}" for number, name in PROFILE_CHOICES.items())
    while True:
        answer = input_func(f"Install profile:\n{menu}\nChoose [1-5] (default 1): ")
        profile = coerce_profile_choice(answer)
        if profile is not None:
            break
        log_installer(
            f"'{answer}' is not a profile number (1-5).", "warning", logger_to_use
        )
    values["install_profile"] = profile
    flags = resolve_profile(profile)

    # URLs that were only implied by the previous domain follow the new answer.
    if values.get("app_url") == _implied_app_url(base.domain):
        values["app_url"] = ""
    if values.get("nexus_api_url") == _implied_api_url(base.app_url):
        values["nexus_api_url"] = ""

    for spec in PROMPTS:
        if not spec.applies(flags, values):
            continue
        current = values.get(spec.key)
        if spec.key == "nexus_api_url" and not current:
            current = _implied_api_url(
                values.get("app_url") or _implied_app_url(values.get("domain", ""))
            )
        if spec.yes_no:
            shown = "Y/n" if current else "y/N"
            values[spec.key] = coerce_yes_no(
                input_func(f"{spec.label} [{shown}]: "), default=bool(current)
            )
            continue
        if spec.secret:
            hint = " [keep current]" if current else ""
            answer = getpass_func(f"{spec.label}{hint}: ")
        else:
            hint = f" [{current}]" if current not in (None, "") else ""
            answer = input_func(f"{spec.label}{hint}: ")
        answer = (answer or "").strip()
        values[spec.key] = answer if answer else current

    return InstallSettings(**values)


def format_settings_summary(
    settings: InstallSettings, flags: Optional[StageFlags] = None
) -> str:
    """Human-readable listing of the record, secrets masked."""
    lines = []
    for key, value in settings.as_file_values().items():
        if key.lower() in SECRET_KEYS:
            value = MASK if value else "[NOT SET]"
        lines.append(f"  {key:<24} {value}")
    if flags is not None:
        lines.append("")
        lines.append("  Stages enabled by profile:")
        for name, enabled in flags.as_dict().items():
            lines.append(f"    {name:<24} {'on' if enabled else 'off'}")
    return "\n".join(lines)


def confirm_settings(
    settings: InstallSettings,
    flags: StageFlags,
    input_func: InputFunc = input,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Show the summary and require an explicit yes.

    Raises:
        UserAbortError: For any answer other than y/yes.
    """
    logger_to_use = current_logger if current_logger else module_logger
    log_installer(
        f"Please review the configuration:\n{format_settings_summary(settings, flags)}",
        "info",
        logger_to_use,
    )
    try:
        answer = input_func("Proceed with installation? (y/N): ")
    except EOFError:
        log_installer(
            "No user input (EOF), defaulting to 'N'.", "warning", logger_to_use
        )
        answer = ""
    if not coerce_yes_no(answer):
        raise UserAbortError("Installation cancelled by user. Nothing was changed.")


def view_configuration(
    settings: InstallSettings,
    flags: StageFlags,
    source: str,
    current_logger: Optional[logging.Logger] = None,
) -> None:
    """
    Display the effective configuration (secrets masked), the resolved stage
    flags and the static locations the installer uses.
    """
    logger_to_use = current_logger if current_logger else module_logger
    config_text = (
        f"Current effective configuration (from {source}):\n\n"
        f"{format_settings_summary(settings, flags)}\n\n"
        f"  Log file (static):        {static_config.LOG_FILE_PATH}\n"
        f"  Script version (static):  {static_config.SCRIPT_VERSION}\n"
    )
    log_installer("Displaying current configuration:", "info", logger_to_use)
    log_installer(f"\n{config_text}", "info", logger_to_use)
