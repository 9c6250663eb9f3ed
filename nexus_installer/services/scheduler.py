# nexus_installer/services/scheduler.py
# -*- coding: utf-8 -*-
"""Laravel scheduler registration in the system crontab."""

from common.system_utils import file_has_line
from nexus_installer.step_executor import StageContext
from nexus_installer.templates import render_scheduler_line


def register_scheduler(ctx: StageContext) -> None:
    """Append the schedule:run line unless an exact copy is already present."""
    crontab = ctx.host_path(ctx.host_paths.crontab)
    line = render_scheduler_line(ctx.settings.app_path, ctx.web_user)
    if file_has_line(crontab, line):
        ctx.logger.info(f"Scheduler entry already present in {crontab}.")
        return
    ctx.append_line("scheduler.register", str(crontab), line)
    ctx.service("restart", "scheduler", step_id="scheduler.restart")
