# nexus_installer/step_executor.py
# -*- coding: utf-8 -*-
"""
Provides functionality to execute individual installer stages.

A stage is a named unit of work with an enablement predicate, an optional
"already satisfied?" check, an action, and a failure policy. Inside an
action every external command is a *step* identified by a step id; the
failure policy of each step id is looked up in STEP_POLICIES, so which
failures abort the run is auditable in one table rather than scattered
through the actions.
"""

import logging
import shlex
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from common.command_utils import CommandOutcome, CommandRunner, log_installer
from common.file_utils import upsert_keys
from common.package_manager import PackageManager
from common.system_utils import OsInfo
from nexus_installer.config import SYMBOLS_DEFAULT, HostPaths
from nexus_installer.config_models import InstallSettings
from nexus_installer.errors import EssentialStepError, ErrorKind
from nexus_installer.profiles import StageFlags

module_logger = logging.getLogger(__name__)


class FailurePolicy(str, Enum):
    ESSENTIAL = "essential"
    ADVISORY = "advisory"


ESSENTIAL = FailurePolicy.ESSENTIAL
ADVISORY = FailurePolicy.ADVISORY

STEP_POLICIES: Mapping[str, FailurePolicy] = {
    # package manager
    "packages.update": ESSENTIAL,
    "packages.upgrade": ESSENTIAL,
    "packages.install": ESSENTIAL,
    "packages.add_repository": ESSENTIAL,
    "service.enable": ESSENTIAL,
    "service.restart": ESSENTIAL,
    # swap
    "swap.allocate": ESSENTIAL,
    "swap.permissions": ESSENTIAL,
    "swap.format": ESSENTIAL,
    "swap.activate": ESSENTIAL,
    "swap.register": ESSENTIAL,
    # cache store
    "cache.configure": ESSENTIAL,
    # source checkout
    "source.prepare": ESSENTIAL,
    "source.clone": ESSENTIAL,
    "source.move": ESSENTIAL,
    # runtime tooling
    "tooling.composer_download": ESSENTIAL,
    "tooling.composer_install": ESSENTIAL,
    "tooling.composer_cleanup": ESSENTIAL,
    # database
    "database.provision": ESSENTIAL,
    # application .env files
    "env.copy_example": ESSENTIAL,
    "env.write": ESSENTIAL,
    "env.permissions": ESSENTIAL,
    # backend
    "backend.dependencies": ESSENTIAL,
    "backend.key_generate": ESSENTIAL,
    "backend.migrate": ESSENTIAL,
    "backend.seed": ESSENTIAL,
    # frontend
    "frontend.dependencies": ESSENTIAL,
    "frontend.esbuild_permissions": ADVISORY,
    "frontend.build": ESSENTIAL,
    "frontend.ownership": ESSENTIAL,
    # subs
    "subs.dependencies": ESSENTIAL,
    "subs.ownership": ESSENTIAL,
    # reverse proxy and certificates
    "proxy.write_site": ESSENTIAL,
    "proxy.cache_dir": ESSENTIAL,
    "proxy.enable_site": ESSENTIAL,
    "proxy.disable_default_site": ESSENTIAL,
    "proxy.validate": ESSENTIAL,
    "proxy.reload": ESSENTIAL,
    "certbot.issue": ADVISORY,
    "certbot.renew_dry_run": ADVISORY,
    # process supervisor
    "supervisor.log_dir": ESSENTIAL,
    "supervisor.write_program": ESSENTIAL,
    "supervisor.reread": ESSENTIAL,
    "supervisor.update": ESSENTIAL,
    "supervisor.start": ADVISORY,
    "supervisor.status": ADVISORY,
    # scheduler
    "scheduler.register": ESSENTIAL,
    "scheduler.restart": ADVISORY,
    # bootstrap
    "jobs.artisan": ADVISORY,
    "admin.provision": ADVISORY,
    "permissions.ownership": ESSENTIAL,
}


class StageStatus(str, Enum):
    COMPLETED = "completed"
    SKIPPED = "skipped"
    SATISFIED = "satisfied"
    FAILED = "failed"
    NOT_RUN = "not run"


@dataclass
class StageResult:
    tag: str
    status: StageStatus
    reason: str = ""
    error_kind: Optional[ErrorKind] = None
    advisory_failures: List[str] = field(default_factory=list)


@dataclass
class StageContext:
    """
    Everything a stage action may use. Passed explicitly to every action;
    stages never read ambient state.
    """

    settings: InstallSettings
    flags: StageFlags
    runner: CommandRunner
    os_info: OsInfo
    web_user: str
    family_constants: Dict[str, Any]
    host_paths: HostPaths = field(default_factory=HostPaths)
    profile: str = "full"
    logger: logging.Logger = module_logger
    symbols: Dict[str, str] = field(default_factory=lambda: dict(SYMBOLS_DEFAULT))
    # Secondary values derived by earlier stages, e.g. the PHP-FPM socket.
    derived: Dict[str, Any] = field(default_factory=dict)
    advisory_failures: List[str] = field(default_factory=list)
    packages: Optional[PackageManager] = None

    def __post_init__(self) -> None:
        if self.packages is None:
            self.packages = PackageManager(
                self.family_constants,
                self.run_step,
                php_version=self.settings.php_version,
                repository_root=self.host_paths.resolve,
                logger=self.logger,
            )

    @property
    def dry_run(self) -> bool:
        return self.runner.dry_run

    def host_path(self, path: str) -> Path:
        return self.host_paths.resolve(path)

    def run_step(
        self,
        step_id: str,
        command_line: str,
        cmd_input: Optional[str] = None,
        cwd: Optional[str] = None,
    ) -> CommandOutcome:
        """
        Run one step and apply its failure policy.

        Raises:
            KeyError: If `step_id` has no entry in STEP_POLICIES.
            EssentialStepError: If an essential step exits non-zero.
        """
        policy = STEP_POLICIES[step_id]
        outcome = self.runner.execute(command_line, cmd_input=cmd_input, cwd=cwd)
        if outcome.ok:
            return outcome
        if policy is FailurePolicy.ESSENTIAL:
            raise EssentialStepError(step_id, outcome)
        log_installer(
            f"{self.symbols.get('warning', '!')} Advisory step '{step_id}' failed "
            f"(rc {outcome.returncode}); continuing. See the log for details.",
            "warning",
            self.logger,
        )
        self.advisory_failures.append(step_id)
        return outcome

    def write_file(
        self, step_id: str, path: str, content: str, append: bool = False
    ) -> CommandOutcome:
        """Write (or append) `content` to `path` via `tee`."""
        flag = "-a " if append else ""
        return self.run_step(
            step_id,
            f"tee {flag}{shlex.quote(str(path))} > /dev/null",
            cmd_input=content,
        )

    def append_line(self, step_id: str, path: str, line: str) -> CommandOutcome:
        """Append one line, starting a new line if the file lacks a trailing newline."""
        file_path = Path(path)
        current = file_path.read_text(encoding="utf-8") if file_path.is_file() else ""
        prefix = "\n" if current and not current.endswith("\n") else ""
        return self.write_file(step_id, path, f"{prefix}{line}\n", append=True)

    def upsert_file_keys(
        self,
        step_id: str,
        path: str,
        values: Mapping[str, str],
        delimiter: str = "=",
    ) -> bool:
        """
        Read-modify-write key/value settings. The file is only rewritten when
        its content would change.

        Returns:
            True if a write was issued.
        """
        file_path = Path(path)
        current = file_path.read_text(encoding="utf-8") if file_path.is_file() else ""
        updated = upsert_keys(current, values, delimiter)
        if updated == current:
            self.logger.info(f"{path} already up to date ({len(values)} keys).")
            return False
        self.logger.info(f"Setting {', '.join(values)} in {path}")
        self.write_file(step_id, path, updated)
        return True

    def service(self, action: str, role: str, step_id: str = "service.enable") -> CommandOutcome:
        """systemctl `action` on the family's service name for `role`."""
        name = self.packages.service_name(role)
        if action == "enable":
            return self.run_step(step_id, f"systemctl enable --now {shlex.quote(name)}")
        return self.run_step(step_id, f"systemctl {action} {shlex.quote(name)}")


StageAction = Callable[[StageContext], Optional[bool]]


@dataclass(frozen=True)
class Stage:
    """
    A named unit of work.

    `enabled` decides from the flags (and settings) whether the stage runs at
    all; `skip_reason` is logged when it does not. `is_satisfied`, when set,
    lets a stage report that the host already matches and skip its action.
    """

    tag: str
    description: str
    action: StageAction
    enabled: Callable[[StageFlags, InstallSettings], bool] = lambda flags, settings: True
    skip_reason: str = "disabled by profile"
    policy: FailurePolicy = FailurePolicy.ESSENTIAL
    is_satisfied: Optional[Callable[[StageContext], bool]] = None


def execute_stage(stage: Stage, context: StageContext) -> StageResult:
    """
    Execute a single stage.

    Returns:
        StageResult. Never raises for failures of the action itself; the
        caller decides abort-vs-continue from the result and the stage's
        failure policy.
    """
    logger_to_use = context.logger
    symbols = context.symbols

    if not stage.enabled(context.flags, context.settings):
        log_installer(
            f"{symbols.get('skip', '⏭️')} Skipping {stage.description} ({stage.tag}): {stage.skip_reason}",
            "info",
            logger_to_use,
        )
        return StageResult(stage.tag, StageStatus.SKIPPED, stage.skip_reason)

    if stage.is_satisfied is not None and stage.is_satisfied(context):
        log_installer(
            f"{symbols.get('info', 'ℹ️')} {stage.description} ({stage.tag}) already satisfied. Skipping.",
            "info",
            logger_to_use,
        )
        return StageResult(stage.tag, StageStatus.SATISFIED, "already satisfied")

    log_installer(
        f"--- {symbols.get('step', '➡️')} Executing: {stage.description} ({stage.tag}) ---",
        "info",
        logger_to_use,
    )
    advisory_before = len(context.advisory_failures)
    try:
        stage.action(context)
    except EssentialStepError as e:
        log_installer(
            f"{symbols.get('error', '❌')} FAILED: {stage.description} ({stage.tag}): {e}",
            "error",
            logger_to_use,
        )
        return StageResult(
            stage.tag,
            StageStatus.FAILED,
            str(e),
            error_kind=ErrorKind.ESSENTIAL,
            advisory_failures=context.advisory_failures[advisory_before:],
        )
    except Exception as e:
        log_installer(
            f"{symbols.get('error', '❌')} FAILED: {stage.description} ({stage.tag})",
            "error",
            logger_to_use,
        )
        log_installer(
            f"   Error details: {str(e)}",
            "error",
            logger_to_use,
            exc_info=True,
        )
        return StageResult(
            stage.tag,
            StageStatus.FAILED,
            str(e),
            error_kind=ErrorKind.ESSENTIAL,
            advisory_failures=context.advisory_failures[advisory_before:],
        )

    advisory = context.advisory_failures[advisory_before:]
    log_installer(
        f"--- {symbols.get('success', '✅')} Completed: {stage.description} ({stage.tag})"
        + (f" with {len(advisory)} advisory warning(s)" if advisory else "")
        + " ---",
        "success",
        logger_to_use,
    )
    return StageResult(stage.tag, StageStatus.COMPLETED, advisory_failures=advisory)
