# nexus_installer/services/supervisor.py
# -*- coding: utf-8 -*-
"""
Supervisor programs for the queue workers and the subs process.
"""

import logging
import shlex
from typing import List, Tuple

from nexus_installer import config
from nexus_installer.step_executor import StageContext
from nexus_installer.templates import (
    render_queue_worker_program,
    render_subs_program,
)

module_logger = logging.getLogger(__name__)


def subs_log_dir(ctx: StageContext) -> str:
    return f"{ctx.settings.subs_path}/logs"


def supervisor_programs(ctx: StageContext) -> List[Tuple[str, str]]:
    """(program name, file content) for every program the flags enable."""
    settings = ctx.settings
    programs: List[Tuple[str, str]] = []
    if ctx.flags.supervisor_app_workers:
        programs.append(
            (
                config.SUPERVISOR_PROGRAM_APP_WORKER,
                render_queue_worker_program(
                    config.SUPERVISOR_PROGRAM_APP_WORKER,
                    settings.app_path,
                    ctx.web_user,
                    queue="default",
                    numprocs=2,
                    log_name="worker.log",
                ),
            )
        )
        programs.append(
            (
                config.SUPERVISOR_PROGRAM_SYNC_WORKER,
                render_queue_worker_program(
                    config.SUPERVISOR_PROGRAM_SYNC_WORKER,
                    settings.app_path,
                    ctx.web_user,
                    queue="sync",
                    numprocs=1,
                    log_name="worker-sync.log",
                ),
            )
        )
    if ctx.flags.subs:
        programs.append(
            (
                config.SUPERVISOR_PROGRAM_SUBS,
                render_subs_program(settings.subs_path, ctx.web_user, subs_log_dir(ctx)),
            )
        )
    return programs


def configure_supervisor(ctx: StageContext) -> None:
    ctx.packages.install("supervisor")
    ctx.service("enable", "supervisor")

    owner = f"{ctx.web_user}:{ctx.web_user}"
    log_dirs = []
    if ctx.flags.supervisor_app_workers:
        log_dirs.append(f"{ctx.settings.app_path}/storage/logs")
    if ctx.flags.subs:
        log_dirs.append(subs_log_dir(ctx))
    for log_dir in log_dirs:
        ctx.run_step("supervisor.log_dir", f"mkdir -p {shlex.quote(log_dir)}")
        ctx.run_step("supervisor.log_dir", f"chown {owner} {shlex.quote(log_dir)}")

    conf_dir = ctx.host_path(ctx.packages.path("supervisor_conf_dir"))
    extension = ctx.packages.path("supervisor_conf_ext")
    programs = supervisor_programs(ctx)
    for name, content in programs:
        ctx.write_file("supervisor.write_program", str(conf_dir / f"{name}{extension}"), content)

    ctx.run_step("supervisor.reread", "supervisorctl reread")
    ctx.run_step("supervisor.update", "supervisorctl update")
    for name, _ in programs:
        ctx.run_step("supervisor.start", f"supervisorctl start {shlex.quote(name + ':*')}")
    ctx.run_step("supervisor.status", "supervisorctl status")
