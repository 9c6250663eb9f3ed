# nexus_installer/services/sources.py
# -*- coding: utf-8 -*-
"""
Source checkout of the two applications, Node.js and Composer.
"""

import logging
import shlex
from pathlib import Path

from common.command_utils import log_installer
from nexus_installer import config
from nexus_installer.step_executor import StageContext

module_logger = logging.getLogger(__name__)


def checkout_repository(
    ctx: StageContext, repo_url: str, target_path: str, clone_dir_name: str
) -> bool:
    """
    Clone `repo_url` next to `target_path` and move it into place.

    Nothing is done when `target_path` already has git metadata. The clone
    lands in `<parent>/<clone_dir_name>` and is renamed when the configured
    path differs.

    Returns:
        True if a clone was made.

    Raises:
        RuntimeError: If `target_path` exists, is not a checkout and is not
            empty; moving the clone there would nest it.
    """
    target = Path(target_path)
    if (target / ".git").is_dir():
        log_installer(
            f"{target} is already a git checkout. Skipping clone.",
            "info",
            ctx.logger,
        )
        return False

    if target.is_dir() and any(target.iterdir()):
        raise RuntimeError(
            f"{target} exists and is not a git checkout. Move it aside and re-run."
        )

    parent = target.parent
    clone_dir = parent / clone_dir_name
    ctx.run_step("source.prepare", f"mkdir -p {shlex.quote(str(parent))}")

    if (clone_dir / ".git").is_dir():
        ctx.logger.info(f"Reusing existing clone at {clone_dir}.")
    else:
        ctx.run_step(
            "source.clone",
            f"git clone {shlex.quote(repo_url)} {shlex.quote(str(clone_dir))}",
        )

    if clone_dir != target:
        if target.is_dir():
            ctx.run_step("source.move", f"rmdir {shlex.quote(str(target))}")
        ctx.run_step(
            "source.move",
            f"mv {shlex.quote(str(clone_dir))} {shlex.quote(str(target))}",
        )
    return True


def checkout_sources(ctx: StageContext) -> None:
    settings = ctx.settings
    if ctx.flags.backend:
        checkout_repository(
            ctx, settings.app_repo_url, settings.app_path, config.APP_CLONE_DIR_NAME
        )
    if ctx.flags.subs:
        checkout_repository(
            ctx, settings.subs_repo_url, settings.subs_path, config.SUBS_CLONE_DIR_NAME
        )


def install_composer(ctx: StageContext) -> None:
    composer_bin = ctx.host_path(config.COMPOSER_BIN_PATH)
    if composer_bin.exists():
        ctx.logger.info(f"Composer already installed at {composer_bin}. Skipping.")
        return

    work_dir = "/tmp"
    ctx.run_step(
        "tooling.composer_download",
        "php -r \"copy('https://getcomposer.org/installer', 'composer-setup.php');\"",
        cwd=work_dir,
    )
    ctx.run_step(
        "tooling.composer_install",
        f"php composer-setup.php --install-dir={shlex.quote(str(composer_bin.parent))} "
        f"--filename={composer_bin.name}",
        cwd=work_dir,
    )
    ctx.run_step(
        "tooling.composer_cleanup",
        "php -r \"unlink('composer-setup.php');\"",
        cwd=work_dir,
    )


def install_runtime_tooling(ctx: StageContext) -> None:
    """Node.js LTS from NodeSource for both apps, Composer for the back end."""
    # The NodeSource setup script refreshes the package index itself.
    ctx.packages.add_repository("nodejs", refresh=False)
    ctx.packages.install("nodejs")
    if ctx.flags.backend:
        install_composer(ctx)
