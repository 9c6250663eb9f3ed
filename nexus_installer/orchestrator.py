# nexus_installer/orchestrator.py
# -*- coding: utf-8 -*-
"""
Stage orchestrator: runs the fixed, ordered installer pipeline.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from nexus_installer.services import (
    backend,
    bootstrap_jobs,
    database,
    nginx,
    packages,
    scheduler,
    sources,
    subs,
    supervisor,
    system,
)
from nexus_installer.step_executor import (
    FailurePolicy,
    Stage,
    StageContext,
    StageResult,
    StageStatus,
    execute_stage,
)


@dataclass
class PipelineResult:
    results: List[StageResult] = field(default_factory=list)
    aborted: bool = False
    failed_stage: Optional[str] = None

    def status_of(self, tag: str) -> Optional[StageStatus]:
        for result in self.results:
            if result.tag == tag:
                return result.status
        return None

    @property
    def advisory_failures(self) -> List[str]:
        return [step for result in self.results for step in result.advisory_failures]


class StageOrchestrator:
    """Runs stages strictly in the order they were added."""

    def __init__(
        self,
        context: StageContext,
        orchestrator_logger: Optional[logging.Logger] = None,
    ):
        self.context = context
        self.logger = orchestrator_logger or logging.getLogger(__name__)
        self.stages: List[Stage] = []

    def add_stage(self, stage: Stage) -> None:
        self.stages.append(stage)
        self.logger.debug(f"Stage '{stage.tag}' added to the queue.")

    def run(self) -> PipelineResult:
        """
        Execute all added stages in sequence.

        A failed essential stage stops the pipeline; the stages after it are
        reported as not run. A failed advisory stage is logged and the
        pipeline continues.
        """
        pipeline = PipelineResult()
        self.logger.info("Orchestration started.")
        total = len(self.stages)
        for index, stage in enumerate(self.stages):
            self.logger.info(f"--- Stage {index + 1}/{total}: {stage.description} ---")
            result = execute_stage(stage, self.context)
            pipeline.results.append(result)

            if result.status is not StageStatus.FAILED:
                continue
            if stage.policy is FailurePolicy.ADVISORY:
                self.logger.warning(
                    f"Stage '{stage.tag}' is advisory. Continuing orchestration."
                )
                continue

            self.logger.error(
                f"Essential stage '{stage.tag}' failed. Halting orchestration. "
                "Fix the cause and re-run; completed stages will be skipped or re-applied safely."
            )
            pipeline.aborted = True
            pipeline.failed_stage = stage.tag
            for remaining in self.stages[index + 1:]:
                pipeline.results.append(
                    StageResult(remaining.tag, StageStatus.NOT_RUN, "run aborted")
                )
            return pipeline

        self.logger.info("✨ Orchestration finished.")
        return pipeline


def build_stage_pipeline() -> List[Stage]:
    """The installer stages, in execution order."""
    return [
        Stage("base_packages", "System update & base packages", system.install_base_packages),
        Stage(
            "swap",
            "Swap file",
            system.configure_swap,
            is_satisfied=system.swap_is_configured,
        ),
        Stage(
            "core_packages",
            "PHP & web server packages",
            packages.install_core_packages,
            enabled=lambda flags, settings: flags.backend or flags.nginx,
            skip_reason="no back end or web server on this host",
        ),
        Stage(
            "cache_store",
            "Redis cache store",
            packages.install_cache_store,
            enabled=lambda flags, settings: flags.backend and settings.install_redis,
            skip_reason="INSTALL_REDIS is false or no back end on this host",
        ),
        Stage(
            "source_checkout",
            "Clone Nexus AMS and Subs",
            sources.checkout_sources,
            enabled=lambda flags, settings: flags.backend or flags.subs,
        ),
        Stage(
            "runtime_tooling",
            "Node.js LTS & Composer",
            sources.install_runtime_tooling,
            enabled=lambda flags, settings: flags.backend or flags.subs,
        ),
        Stage(
            "database",
            "MySQL database & user",
            database.provision_database,
            enabled=lambda flags, settings: flags.database,
            skip_reason="database is remote or not part of this profile",
        ),
        Stage(
            "backend",
            "Laravel .env & backend install",
            backend.configure_backend,
            enabled=lambda flags, settings: flags.backend,
        ),
        Stage(
            "frontend",
            "Frontend dependencies & Vite build",
            backend.build_frontend,
            enabled=lambda flags, settings: flags.backend,
        ),
        Stage(
            "subs",
            "Subs .env & install",
            subs.configure_subs,
            enabled=lambda flags, settings: flags.subs,
        ),
        Stage(
            "reverse_proxy",
            "Nginx site & Certbot",
            nginx.configure_reverse_proxy,
            enabled=lambda flags, settings: flags.nginx,
        ),
        Stage(
            "supervisor",
            "Supervisor processes",
            supervisor.configure_supervisor,
            enabled=lambda flags, settings: flags.supervisor,
        ),
        Stage(
            "scheduler",
            "Cron scheduler",
            scheduler.register_scheduler,
            enabled=lambda flags, settings: flags.cron,
        ),
        Stage(
            "initial_jobs",
            "Initial Laravel jobs",
            bootstrap_jobs.run_initial_jobs,
            enabled=lambda flags, settings: flags.initial_jobs,
            policy=FailurePolicy.ADVISORY,
        ),
        Stage(
            "admin_user",
            "Initial admin user",
            bootstrap_jobs.create_admin_user,
            enabled=lambda flags, settings: flags.admin_user and settings.create_admin_user,
            skip_reason="disabled by profile or CREATE_ADMIN_USER is false",
            policy=FailurePolicy.ADVISORY,
        ),
        Stage(
            "final_permissions",
            "Final ownership",
            bootstrap_jobs.apply_final_permissions,
            enabled=lambda flags, settings: flags.backend or flags.subs,
        ),
    ]
