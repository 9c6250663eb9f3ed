# nexus_installer/services/bootstrap_jobs.py
# -*- coding: utf-8 -*-
"""
One-time application jobs after the first deploy: initial data sync, the
admin account and final file ownership.
"""

import logging
import shlex
from typing import List

from common.command_utils import log_installer
from nexus_installer import config
from nexus_installer.config_models import InstallSettings
from nexus_installer.step_executor import StageContext

module_logger = logging.getLogger(__name__)


def _artisan_as_web_user(ctx: StageContext, arguments: str) -> str:
    return f"sudo -u {shlex.quote(ctx.web_user)} {config.PHP_BIN_PATH} artisan {arguments}"


def run_initial_jobs(ctx: StageContext) -> None:
    for job in config.INITIAL_ARTISAN_JOBS:
        ctx.run_step(
            "jobs.artisan",
            _artisan_as_web_user(ctx, job),
            cwd=ctx.settings.app_path,
        )


def _php_string(value: str) -> str:
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def build_admin_tinker_script(settings: InstallSettings) -> str:
    """
    PHP run through `artisan tinker`: the application's own User model and
    hasher create the account once (looked up by e-mail) and attach the role
    without detaching existing ones.
    """
    return (
        "use App\\Models\\User;\n"
        "use Illuminate\\Support\\Facades\\Hash;\n"
        f"$user = User::where('email', {_php_string(settings.admin_email)})->first();\n"
        "if (! $user) {\n"
        "    $user = new User();\n"
        "    $user->forceFill([\n"
        f"        'name' => {_php_string(settings.admin_name)},\n"
        f"        'email' => {_php_string(settings.admin_email)},\n"
        f"        'password' => Hash::make({_php_string(settings.admin_password)}),\n"
        f"        'nation_id' => (int) {_php_string(settings.admin_nation_id)},\n"
        "        'is_admin' => true,\n"
        "        'verified_at' => now(),\n"
        "    ])->save();\n"
        "}\n"
        f"$user->roles()->syncWithoutDetaching([(int) {_php_string(settings.admin_role_id)}]);\n"
        "echo 'admin user ' . $user->id . ' ready' . PHP_EOL;\n"
    )


def create_admin_user(ctx: StageContext) -> None:
    settings = ctx.settings
    log_installer(
        f"Ensuring admin user '{settings.admin_name}' <{settings.admin_email}> "
        f"with role {settings.admin_role_id}",
        "info",
        ctx.logger,
    )
    ctx.run_step(
        "admin.provision",
        _artisan_as_web_user(ctx, "tinker"),
        cmd_input=build_admin_tinker_script(settings),
        cwd=settings.app_path,
    )


def owned_trees(ctx: StageContext) -> List[str]:
    trees = []
    if ctx.flags.backend:
        trees.append(ctx.settings.app_path)
    if ctx.flags.subs:
        trees.append(ctx.settings.subs_path)
    return trees


def apply_final_permissions(ctx: StageContext) -> None:
    trees = owned_trees(ctx)
    ctx.run_step(
        "permissions.ownership",
        f"chown -R {ctx.web_user}:{ctx.web_user} "
        + " ".join(shlex.quote(path) for path in trees),
    )
