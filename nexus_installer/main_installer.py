# nexus_installer/main_installer.py
# -*- coding: utf-8 -*-
"""
Main entry point for the Nexus AMS installer.

Handles argument parsing and logging setup, checks the preconditions (root,
supported OS, configuration), resolves the install profile and runs the
stage pipeline, then prints the summary.
"""

import argparse
import getpass
import logging
import sys
from pathlib import Path
from typing import Callable, List, Optional

from pydantic import ValidationError

from common.command_utils import CommandRunner, log_installer
from common.constants_loader import get_family_constants
from common.core_utils import setup_logging
from common.system_utils import (
    detect_os,
    detect_web_user,
    listening_ports,
    require_root,
)
from nexus_installer import config
from nexus_installer.cli_handler import (
    confirm_settings,
    prompt_install_settings,
    view_configuration,
)
from nexus_installer.config_loader import (
    load_install_settings,
    persist_install_settings,
    validate_required_settings,
)
from nexus_installer.config_models import InstallSettings
from nexus_installer.errors import (
    EssentialStepError,
    PreconditionError,
    UserAbortError,
)
from nexus_installer.orchestrator import StageOrchestrator, build_stage_pipeline
from nexus_installer.profiles import StageFlags, resolve_profile
from nexus_installer.step_executor import StageContext
from nexus_installer.summary import collect_run_report, print_run_report

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ESSENTIAL_FAILURE = 1
EXIT_PRECONDITION_FAILURE = 2


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Nexus AMS installer. Provisions PHP-FPM, MySQL, Nginx, Node.js, "
        "Composer, Supervisor and Certbot, then deploys Nexus AMS and Subs.",
        epilog="Example: sudo ./install.py --non-interactive --config ./install.env",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print every command instead of running it. Nothing on the host is changed.",
    )
    parser.add_argument(
        "--non-interactive",
        action="store_true",
        help="Read the configuration file and skip all prompts.",
    )
    parser.add_argument(
        "--config",
        default=str(config.ENV_FILE_PATH),
        help="Configuration file (KEY=\"value\" lines).",
    )
    parser.add_argument(
        "--profile",
        default=None,
        help="Override INSTALL_PROFILE from the configuration file (non-interactive runs).",
    )
    parser.add_argument(
        "--log-file",
        default=str(config.LOG_FILE_PATH),
        help="Append-only run log.",
    )
    parser.add_argument(
        "--view-config",
        action="store_true",
        help="Show the effective configuration and stage flags, then exit.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging."
    )
    return parser


def warn_on_busy_ports(
    host_paths: config.HostPaths, current_logger: Optional[logging.Logger] = None
) -> None:
    logger_to_use = current_logger if current_logger else logger
    ports = listening_ports(
        host_paths.resolve(host_paths.proc_net_tcp),
        host_paths.resolve(host_paths.proc_net_tcp6),
    )
    for port in (80, 443):
        if port in ports:
            log_installer(
                f"{config.SYMBOLS_DEFAULT['warning']} Port {port} appears in use. "
                "Continuing (Nginx will likely reuse it).",
                "warning",
                logger_to_use,
            )


def obtain_settings(
    parsed_args: argparse.Namespace,
    runner: CommandRunner,
    input_func: Callable[[str], str],
    getpass_func: Callable[[str], str],
) -> InstallSettings:
    """
    Load the configuration file, or run the prompt flow and persist the
    confirmed answers.

    Raises:
        PreconditionError: Missing/invalid file, unknown profile, missing keys.
        UserAbortError: The confirmation was declined.
    """
    config_path = Path(parsed_args.config)
    if parsed_args.non_interactive or parsed_args.view_config:
        return load_install_settings(config_path, current_logger=logger)

    defaults = None
    if config_path.is_file():
        log_installer(
            f"Using {config_path} for the default answers.", "info", logger
        )
        defaults = load_install_settings(config_path, current_logger=logger)
    if parsed_args.profile:
        log_installer(
            "--profile only applies to --non-interactive runs; the prompt decides.",
            "warning",
            logger,
        )

    try:
        settings = prompt_install_settings(
            defaults,
            input_func=input_func,
            getpass_func=getpass_func,
            current_logger=logger,
        )
    except ValidationError as e:
        raise PreconditionError(f"Invalid answer: {e}") from e
    except EOFError as e:
        raise UserAbortError("Input closed before all prompts were answered.") from e

    flags = resolve_profile(settings.install_profile)
    validate_required_settings(settings, flags, source="the answers given")
    confirm_settings(settings, flags, input_func=input_func, current_logger=logger)
    persist_install_settings(settings, runner, config_path, current_logger=logger)
    return settings


def main(
    args: Optional[List[str]] = None,
    host_paths: Optional[config.HostPaths] = None,
    runner: Optional[CommandRunner] = None,
    input_func: Callable[[str], str] = input,
    getpass_func: Callable[[str], str] = getpass.getpass,
) -> int:
    parser = build_arg_parser()
    try:
        parsed_args = parser.parse_args(args)
    except SystemExit as e:
        return e.code

    setup_logging(
        log_level=logging.DEBUG if parsed_args.verbose else logging.INFO,
        log_file=parsed_args.log_file,
        log_to_console=True,
        log_prefix=config.LOG_PREFIX,
    )
    symbols = config.SYMBOLS_DEFAULT
    host_paths = host_paths or config.HostPaths()
    runner = runner or CommandRunner(dry_run=parsed_args.dry_run, logger=logger)

    log_installer(
        f"{symbols['sparkles']} Nexus AMS Installer v{config.SCRIPT_VERSION}",
        "info",
        logger,
    )
    if runner.dry_run:
        log_installer(
            f"{symbols['warning']} Dry-run mode enabled. Commands will be printed but not executed.",
            "warning",
            logger,
        )

    try:
        if not runner.dry_run and not parsed_args.view_config:
            require_root()
        os_info = detect_os(
            host_paths.resolve(host_paths.os_release), current_logger=logger
        )
        family_constants = get_family_constants(os_info.package_family, os_info.os_id)
        web_user = detect_web_user(
            default=family_constants.get("web_user", config.WEB_USER_DEFAULT),
            current_logger=logger,
        )

        settings = obtain_settings(parsed_args, runner, input_func, getpass_func)
        profile = (
            parsed_args.profile
            if parsed_args.profile and (parsed_args.non_interactive or parsed_args.view_config)
            else settings.install_profile
        )
        flags: StageFlags = resolve_profile(profile)

        if parsed_args.view_config:
            view_configuration(settings, flags, parsed_args.config, current_logger=logger)
            return EXIT_OK

        validate_required_settings(settings, flags, source=parsed_args.config)
    except UserAbortError as e:
        log_installer(f"{symbols['info']} {e}", "info", logger)
        return EXIT_OK
    except PreconditionError as e:
        log_installer(f"{symbols['error']} {e}", "error", logger)
        return EXIT_PRECONDITION_FAILURE
    except EssentialStepError as e:
        log_installer(f"{symbols['error']} {e}", "error", logger)
        return EXIT_ESSENTIAL_FAILURE

    log_installer(
        f"{symbols['rocket']} Profile '{profile}' on {os_info.pretty_name}; "
        f"web process identity '{web_user}'.",
        "info",
        logger,
    )
    if flags.nginx:
        warn_on_busy_ports(host_paths, current_logger=logger)

    context = StageContext(
        settings=settings,
        flags=flags,
        runner=runner,
        os_info=os_info,
        web_user=web_user,
        family_constants=family_constants,
        host_paths=host_paths,
        profile=profile,
        logger=logger,
    )
    orchestrator = StageOrchestrator(context, orchestrator_logger=logger)
    for stage in build_stage_pipeline():
        orchestrator.add_stage(stage)
    pipeline = orchestrator.run()

    report = collect_run_report(context, pipeline, parsed_args.log_file)
    print_run_report(report, current_logger=logger)

    if pipeline.aborted:
        log_installer(
            f"{symbols['critical']} Installation aborted at stage '{pipeline.failed_stage}'. "
            f"See {parsed_args.log_file}.",
            "critical",
            logger,
        )
        return EXIT_ESSENTIAL_FAILURE
    log_installer(f"{symbols['success']} 🎉 Installation finished.", "success", logger)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
