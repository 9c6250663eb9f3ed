# tests/nexus_installer/test_orchestrator.py
# -*- coding: utf-8 -*-
"""
Tests for the stage pipeline: order, gating, abort semantics, dry-run
fidelity and re-run idempotency.
"""

from common.command_utils import CommandRunner
from common.constants_loader import get_family_constants
from common.system_utils import detect_web_user
from nexus_installer import config
from nexus_installer.orchestrator import StageOrchestrator, build_stage_pipeline
from nexus_installer.step_executor import FailurePolicy, Stage, StageStatus

PIPELINE_ORDER = [
    "base_packages",
    "swap",
    "core_packages",
    "cache_store",
    "source_checkout",
    "runtime_tooling",
    "database",
    "backend",
    "frontend",
    "subs",
    "reverse_proxy",
    "supervisor",
    "scheduler",
    "initial_jobs",
    "admin_user",
    "final_permissions",
]


def run_pipeline(ctx):
    orchestrator = StageOrchestrator(ctx)
    for stage in build_stage_pipeline():
        orchestrator.add_stage(stage)
    return orchestrator.run()


def statuses(pipeline):
    return {result.tag: result.status for result in pipeline.results}


def test_pipeline_order_is_fixed():
    assert [stage.tag for stage in build_stage_pipeline()] == PIPELINE_ORDER


def test_only_bootstrap_stages_are_advisory():
    advisory = [s.tag for s in build_stage_pipeline() if s.policy is FailurePolicy.ADVISORY]

    assert advisory == ["initial_jobs", "admin_user"]


def test_full_profile_runs_every_enabled_stage(make_context, emulating_runner):
    ctx = make_context(emulating_runner, install_redis=True, create_admin_user=True,
                       admin_name="Admin", admin_password="pw", admin_nation_id="42")

    pipeline = run_pipeline(ctx)

    assert not pipeline.aborted
    assert [r.tag for r in pipeline.results] == PIPELINE_ORDER
    assert set(statuses(pipeline).values()) == {StageStatus.COMPLETED}


def test_db_only_runs_base_packages_swap_and_database(make_context, emulating_runner):
    """Swap is host preparation, so it runs alongside the database on a db-only host."""
    ctx = make_context(emulating_runner, profile="db-only")

    pipeline = run_pipeline(ctx)

    completed = [r.tag for r in pipeline.results if r.status is StageStatus.COMPLETED]
    assert completed == ["base_packages", "swap", "database"]
    assert emulating_runner.count("php") == 0
    assert emulating_runner.count("nginx") == 0
    assert emulating_runner.count("git clone") == 0


def test_subs_only_runs_subs_and_its_supervisor_program(make_context, emulating_runner):
    ctx = make_context(emulating_runner, profile="subs-only")

    pipeline = run_pipeline(ctx)
    status = statuses(pipeline)

    for tag in ("source_checkout", "runtime_tooling", "subs", "supervisor", "final_permissions"):
        assert status[tag] is StageStatus.COMPLETED, tag
    for tag in ("core_packages", "database", "backend", "reverse_proxy", "scheduler"):
        assert status[tag] is StageStatus.SKIPPED, tag
    assert emulating_runner.count("git clone") == 1
    assert emulating_runner.count("composer") == 0


def test_fresh_redhat_host_uses_the_family_web_user(make_context, emulating_runner, known_users, rocky, host_paths):
    known_users.side_effect = lambda name: name == "nginx" and emulating_runner.count("dnf install -y nginx") > 0
    family = get_family_constants("redhat", "rocky")
    web_user = detect_web_user(default=family["web_user"])
    ctx = make_context(emulating_runner, os_info=rocky, web_user=web_user)

    pipeline = run_pipeline(ctx)

    assert web_user == "nginx"
    assert not pipeline.aborted
    assert ctx.derived["web_user"] == "nginx"
    chowns = [command for command in emulating_runner.history if command.startswith("chown")]
    assert chowns
    assert all("nginx:nginx" in command for command in chowns)
    subs_program = host_paths.resolve("/etc/supervisord.d") / f"{config.SUPERVISOR_PROGRAM_SUBS}.ini"
    assert "user=nginx" in subs_program.read_text(encoding="utf-8")
    assert emulating_runner.count("www-data") == 0


def test_essential_failure_aborts_and_marks_the_rest_not_run(make_context, make_runner):
    runner = make_runner(fail_on=("git clone",))
    ctx = make_context(runner)

    pipeline = run_pipeline(ctx)
    status = statuses(pipeline)

    assert pipeline.aborted
    assert pipeline.failed_stage == "source_checkout"
    assert status["source_checkout"] is StageStatus.FAILED
    assert status["core_packages"] is StageStatus.COMPLETED
    for tag in PIPELINE_ORDER[PIPELINE_ORDER.index("source_checkout") + 1:]:
        assert status[tag] is StageStatus.NOT_RUN, tag
    assert runner.count("npm") == 0


def test_advisory_failures_do_not_stop_the_run(make_context, make_runner):
    runner = make_runner(fail_on=("certbot certonly", "sync:wars"))
    ctx = make_context(runner)

    pipeline = run_pipeline(ctx)

    assert not pipeline.aborted
    assert pipeline.status_of("final_permissions") is StageStatus.COMPLETED
    assert pipeline.advisory_failures == ["certbot.issue", "jobs.artisan"]
    assert runner.count("taxes:collect") == 1


def test_failed_advisory_stage_continues(make_context, emulating_runner):
    def broken(ctx):
        raise RuntimeError("tinker missing")

    ctx = make_context(emulating_runner)
    orchestrator = StageOrchestrator(ctx)
    orchestrator.add_stage(Stage("admin_user", "Admin", broken, policy=FailurePolicy.ADVISORY))
    orchestrator.add_stage(
        Stage("final_permissions", "Ownership", lambda c: c.run_step("permissions.ownership", "chown x"))
    )

    pipeline = orchestrator.run()

    assert not pipeline.aborted
    assert pipeline.status_of("admin_user") is StageStatus.FAILED
    assert pipeline.status_of("final_permissions") is StageStatus.COMPLETED


def test_dry_run_emits_the_same_commands_as_a_real_run(make_context, emulating_runner):
    dry_runner = CommandRunner(dry_run=True)
    run_pipeline(make_context(dry_runner, install_redis=True))

    run_pipeline(make_context(emulating_runner, install_redis=True))

    assert dry_runner.history == emulating_runner.history


def test_dry_run_changes_nothing_on_the_host(make_context, host_paths):
    run_pipeline(make_context(CommandRunner(dry_run=True)))

    root = host_paths.root
    assert sorted(p.relative_to(root).as_posix() for p in root.rglob("*")) == [
        "etc",
        "etc/os-release",
    ]


def test_second_run_changes_nothing_that_was_already_done(make_context, make_runner, settings_values):
    first = make_runner()
    run_pipeline(make_context(first, install_redis=True))
    second = make_runner()

    pipeline = run_pipeline(make_context(second, install_redis=True))

    assert not pipeline.aborted
    assert pipeline.status_of("swap") is StageStatus.SATISFIED
    for fragment in (
        "git clone",
        "fallocate",
        "add-apt-repository",
        "nodesource",
        "key:generate",
        "composer-setup.php",
        "cp ",
        "ln -sf",
    ):
        assert first.count(fragment) >= 1, fragment
        assert second.count(fragment) == 0, fragment

    fstab = (make_context(second).host_path("/etc/fstab")).read_text(encoding="utf-8")
    crontab = (make_context(second).host_path("/etc/crontab")).read_text(encoding="utf-8")
    assert fstab.count("swapfile none swap sw 0 0") == 1
    assert crontab.count("schedule:run") == 1

    env_lines = [
        line.split("=", 1)[0]
        for line in open(f"{settings_values['app_path']}/.env", encoding="utf-8").read().splitlines()
        if line
    ]
    assert len(env_lines) == len(set(env_lines))
    assert "APP_KEY" in env_lines
