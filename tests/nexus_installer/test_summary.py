# tests/nexus_installer/test_summary.py
# -*- coding: utf-8 -*-
"""
Tests for the end-of-run summary.
"""

from common.command_utils import CommandRunner
from nexus_installer.orchestrator import PipelineResult
from nexus_installer.step_executor import StageResult, StageStatus
from nexus_installer.summary import (
    PLACEHOLDER_DRY_RUN,
    PLACEHOLDER_NOT_INSTALLED,
    collect_run_report,
    describe_db_target,
    query_nginx_config,
    query_supervisor_status,
    render_run_report,
)


def test_db_target_per_profile(make_context, emulating_runner):
    assert describe_db_target(make_context(emulating_runner)).startswith("local MySQL")
    assert describe_db_target(make_context(emulating_runner, profile="web-only")) == (
        "remote 127.0.0.1:3306, database 'nexus', user 'nexus'"
    )
    assert describe_db_target(make_context(emulating_runner, profile="subs-only")).startswith("n/a")


def test_dry_run_never_queries(make_context, mocker):
    runner = CommandRunner(dry_run=True)
    ctx = make_context(runner)
    which = mocker.patch("nexus_installer.summary.command_exists")

    assert query_supervisor_status(ctx) == PLACEHOLDER_DRY_RUN
    assert query_nginx_config(ctx) == PLACEHOLDER_DRY_RUN
    which.assert_not_called()
    assert runner.history == []


def test_missing_tools_give_placeholders(make_context, emulating_runner, mocker):
    mocker.patch("nexus_installer.summary.command_exists", return_value=False)
    ctx = make_context(emulating_runner)

    assert query_supervisor_status(ctx) == PLACEHOLDER_NOT_INSTALLED
    assert query_nginx_config(ctx) == PLACEHOLDER_NOT_INSTALLED


def test_query_errors_never_fail_the_report(make_context, emulating_runner, mocker):
    mocker.patch("nexus_installer.summary.command_exists", return_value=True)
    ctx = make_context(emulating_runner)
    mocker.patch.object(emulating_runner, "execute", side_effect=OSError("boom"))

    assert query_supervisor_status(ctx) == "[unavailable]"
    assert query_nginx_config(ctx) == "FAIL"


def test_nginx_check_reports_failure(make_context, make_runner, mocker):
    mocker.patch("nexus_installer.summary.command_exists", return_value=True)

    assert query_nginx_config(make_context(make_runner())) == "OK"
    assert query_nginx_config(make_context(make_runner(fail_on=("nginx -t",)))) == "FAIL"


def test_rendered_report_layout(make_context):
    ctx = make_context(CommandRunner(dry_run=True), profile="web-only")
    pipeline = PipelineResult(
        results=[
            StageResult("base_packages", StageStatus.COMPLETED),
            StageResult("database", StageStatus.SKIPPED, "database is remote or not part of this profile"),
            StageResult("reverse_proxy", StageStatus.COMPLETED, advisory_failures=["certbot.issue"]),
            StageResult("supervisor", StageStatus.FAILED, "boom"),
            StageResult("scheduler", StageStatus.NOT_RUN, "run aborted"),
        ],
        aborted=True,
        failed_stage="supervisor",
    )

    text = render_run_report(collect_run_report(ctx, pipeline, "/var/log/nexus-install.log"))
    lines = text.splitlines()

    assert lines[0] == "====================  SUMMARY  ===================="
    assert lines[1] == "Profile:              web-only"
    assert lines[2] == "Domain:               nexus.example.com"
    assert lines[4] == "Subs path:            -"
    assert f"  {PLACEHOLDER_DRY_RUN}" in lines
    assert "Log file:             /var/log/nexus-install.log (appends each run)" in lines
    assert "  scheduler            not run (run aborted)" in lines
    assert "Advisory failures:    certbot.issue" in lines
    assert "Result:               ABORTED (see the log file)" in lines
    assert "dry_run=yes" in text
