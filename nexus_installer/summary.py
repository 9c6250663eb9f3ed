# nexus_installer/summary.py
# -*- coding: utf-8 -*-
"""
End-of-run summary.

Collecting the report queries the process supervisor and the web server
once more. Those queries never fail the run: when a tool is missing, the
query errors or the run is a dry run, a placeholder is shown instead.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from common.command_utils import CommandRunner, command_exists, log_installer
from nexus_installer.orchestrator import PipelineResult
from nexus_installer.step_executor import StageContext, StageResult

module_logger = logging.getLogger(__name__)

PLACEHOLDER_DRY_RUN = "[dry-run: not queried]"
PLACEHOLDER_UNAVAILABLE = "[unavailable]"
PLACEHOLDER_NOT_INSTALLED = "[not installed on this host]"


@dataclass
class RunReport:
    profile: str
    domain: str
    app_path: str
    subs_path: str
    db_target: str
    toggles: Dict[str, bool]
    supervisor_status: str
    nginx_config: str
    log_file: str
    stages: List[StageResult] = field(default_factory=list)
    aborted: bool = False
    advisory_failures: List[str] = field(default_factory=list)


def describe_db_target(ctx: StageContext) -> str:
    settings = ctx.settings
    if ctx.flags.local_database:
        return f"local MySQL, database '{settings.db_database}', user '{settings.db_username}'@'{settings.db_user_host}'"
    if ctx.flags.remote_database:
        return (
            f"remote {settings.db_host}:{settings.db_port}, database '{settings.db_database}', "
            f"user '{settings.db_username}'"
        )
    return "n/a (no database used on this host)"


def _query(runner: CommandRunner, command_line: str) -> Optional[str]:
    try:
        outcome = runner.execute(command_line)
    except Exception as e:
        module_logger.debug(f"Summary query `{command_line}` failed: {e}")
        return None
    return outcome.output.strip() if outcome.ok else None


def query_supervisor_status(ctx: StageContext) -> str:
    if ctx.dry_run:
        return PLACEHOLDER_DRY_RUN
    if not command_exists("supervisorctl"):
        return PLACEHOLDER_NOT_INSTALLED
    try:
        outcome = ctx.runner.execute("supervisorctl status")
    except Exception as e:
        module_logger.debug(f"supervisorctl status failed: {e}")
        return PLACEHOLDER_UNAVAILABLE
    # supervisorctl exits non-zero when any program is not RUNNING; the
    # listing is still the status.
    return outcome.output.strip() or PLACEHOLDER_UNAVAILABLE


def query_nginx_config(ctx: StageContext) -> str:
    if ctx.dry_run:
        return PLACEHOLDER_DRY_RUN
    if not command_exists("nginx"):
        return PLACEHOLDER_NOT_INSTALLED
    return "OK" if _query(ctx.runner, "nginx -t") is not None else "FAIL"


def collect_run_report(
    ctx: StageContext, pipeline: PipelineResult, log_file: str
) -> RunReport:
    settings = ctx.settings
    return RunReport(
        profile=ctx.profile,
        domain=settings.domain or "-",
        app_path=settings.app_path if ctx.flags.backend else "-",
        subs_path=settings.subs_path if ctx.flags.subs else "-",
        db_target=describe_db_target(ctx),
        toggles={
            "dry_run": ctx.dry_run,
            "install_redis": settings.install_redis,
            "create_admin_user": settings.create_admin_user,
            "enable_snapshots": settings.enable_snapshots,
            "cron": ctx.flags.cron,
            "supervisor": ctx.flags.supervisor,
        },
        supervisor_status=query_supervisor_status(ctx),
        nginx_config=query_nginx_config(ctx),
        log_file=log_file,
        stages=list(pipeline.results),
        aborted=pipeline.aborted,
        advisory_failures=pipeline.advisory_failures,
    )


def _yes_no(value: bool) -> str:
    return "yes" if value else "no"


def render_run_report(report: RunReport) -> str:
    lines = [
        "====================  SUMMARY  ====================",
        f"Profile:              {report.profile}",
        f"Domain:               {report.domain}",
        f"App path:             {report.app_path}",
        f"Subs path:            {report.subs_path}",
        f"Database:             {report.db_target}",
        "Toggles:              "
        + ", ".join(f"{name}={_yes_no(value)}" for name, value in report.toggles.items()),
        "Supervisor processes:",
    ]
    lines.extend(f"  {line}" for line in report.supervisor_status.splitlines())
    lines.append(f"Nginx test:           {report.nginx_config}")
    lines.append(f"Log file:             {report.log_file} (appends each run)")
    lines.append("Stages:")
    for result in report.stages:
        detail = f" ({result.reason})" if result.reason else ""
        lines.append(f"  {result.tag:<20} {result.status.value}{detail}")
    if report.advisory_failures:
        lines.append(
            "Advisory failures:    " + ", ".join(report.advisory_failures)
        )
    if report.aborted:
        lines.append("Result:               ABORTED (see the log file)")
    else:
        lines.append("Result:               finished")
    lines.append("===================================================")
    return "\n".join(lines)


def print_run_report(
    report: RunReport, current_logger: Optional[logging.Logger] = None
) -> None:
    logger_to_use = current_logger if current_logger else module_logger
    log_installer(f"\n{render_run_report(report)}\n", "info", logger_to_use)
