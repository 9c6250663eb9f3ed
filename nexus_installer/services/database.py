# nexus_installer/services/database.py
# -*- coding: utf-8 -*-
"""
Local MySQL server: package, service, database and application account.

All statements are idempotent (IF NOT EXISTS / GRANT) and are fed to the
client on standard input, so the password never appears in a command line
or in the log.
"""

import logging

from common.command_utils import log_installer
from nexus_installer.config_models import InstallSettings
from nexus_installer.step_executor import StageContext

module_logger = logging.getLogger(__name__)

ROOT_SOCKET_CLIENT = "mysql -uroot"
SUDO_CLIENT = "sudo mysql"


def quote_identifier(name: str) -> str:
    return "`" + name.replace("`", "``") + "`"


def quote_string(value: str) -> str:
    return "'" + value.replace("\\", "\\\\").replace("'", "''") + "'"


def build_provisioning_sql(settings: InstallSettings) -> str:
    database = quote_identifier(settings.db_database)
    account = f"{quote_string(settings.db_username)}@{quote_string(settings.db_user_host)}"
    return (
        f"CREATE DATABASE IF NOT EXISTS {database} CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci;\n"
        f"CREATE USER IF NOT EXISTS {account} IDENTIFIED BY {quote_string(settings.db_password)};\n"
        f"GRANT ALL PRIVILEGES ON {database}.* TO {account};\n"
        "FLUSH PRIVILEGES;\n"
    )


def select_admin_client(ctx: StageContext) -> str:
    """
    Prefer root socket login; fall back to `sudo mysql` when it is refused.
    The probe is read-only, so it bypasses the step policy table.
    """
    probe = ctx.runner.execute(f'{ROOT_SOCKET_CLIENT} -e "SELECT 1"')
    if probe.ok:
        return ROOT_SOCKET_CLIENT
    log_installer(
        f"{ctx.symbols.get('warning', '!')} Root socket login failed; trying {SUDO_CLIENT}",
        "warning",
        ctx.logger,
    )
    return SUDO_CLIENT


def provision_database(ctx: StageContext) -> None:
    ctx.packages.install("database")
    ctx.service("enable", "database")

    client = select_admin_client(ctx)
    settings = ctx.settings
    log_installer(
        f"Ensuring database {settings.db_database} and account "
        f"{settings.db_username}@{settings.db_user_host}",
        "info",
        ctx.logger,
    )
    ctx.run_step(
        "database.provision", client, cmd_input=build_provisioning_sql(settings)
    )
