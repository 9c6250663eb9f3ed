# nexus_installer/services/system.py
# -*- coding: utf-8 -*-
"""
Host preparation: package index refresh, base tools and the swap file.
"""

import logging
import shlex

from common.command_utils import log_installer
from common.system_utils import fstab_has_entry, is_swap_active, size_to_mib
from nexus_installer import config
from nexus_installer.step_executor import StageContext

module_logger = logging.getLogger(__name__)


def install_base_packages(ctx: StageContext) -> None:
    ctx.packages.update()
    ctx.packages.upgrade()
    ctx.packages.install("base")


def _swap_path(ctx: StageContext) -> str:
    return str(ctx.host_path(config.SWAPFILE_PATH))


def swap_is_configured(ctx: StageContext) -> bool:
    """Active now and registered for boot."""
    swap_path = _swap_path(ctx)
    return is_swap_active(
        swap_path, ctx.host_path(ctx.host_paths.proc_swaps)
    ) and fstab_has_entry(swap_path, ctx.host_path(ctx.host_paths.fstab))


def configure_swap(ctx: StageContext) -> None:
    """
    Create and activate the swap file unless it is already active, then
    register it in fstab unless an entry already exists.
    """
    swap_path = _swap_path(ctx)
    quoted = shlex.quote(swap_path)
    size = ctx.settings.swap_size

    if is_swap_active(swap_path, ctx.host_path(ctx.host_paths.proc_swaps)):
        log_installer(
            f"Swap file {swap_path} already active. Skipping creation.",
            "info",
            ctx.logger,
        )
    else:
        log_installer(
            f"{ctx.symbols.get('gear', '')} Creating {size} swap file at {swap_path}",
            "info",
            ctx.logger,
        )
        ctx.run_step(
            "swap.allocate",
            f"fallocate -l {shlex.quote(size)} {quoted} || "
            f"dd if=/dev/zero of={quoted} bs=1M count={size_to_mib(size)}",
        )
        ctx.run_step("swap.permissions", f"chmod 600 {quoted}")
        ctx.run_step("swap.format", f"mkswap {quoted}")
        ctx.run_step("swap.activate", f"swapon {quoted}")

    fstab = ctx.host_path(ctx.host_paths.fstab)
    if fstab_has_entry(swap_path, fstab):
        ctx.logger.info(f"{swap_path} already registered in {fstab}.")
        return
    ctx.append_line("swap.register", str(fstab), f"{swap_path} none swap sw 0 0")
