# common/command_utils.py
# -*- coding: utf-8 -*-
"""
Utilities for executing shell commands and logging their output.

Every host mutation performed by the installer goes through
`CommandRunner.execute`. In dry-run mode the runner records and prints the
command line instead of running it, so a dry run emits exactly the commands a
real run would, in the same order.
"""

import logging
import shutil
import subprocess
from dataclasses import dataclass
from typing import Dict, List, Optional

from nexus_installer.config import SYMBOLS_DEFAULT

module_logger = logging.getLogger(__name__)


def log_installer(
    message: str,
    level: str = "info",
    current_logger: Optional[logging.Logger] = None,
    symbols: Optional[Dict[str, str]] = None,
    exc_info: bool = False,
) -> None:
    """
    Log a message at the given string level.

    Args:
        message (str): The log message to be recorded.
        level (str): "debug", "info", "success", "warning", "error" or
            "critical". "success" is logged at INFO.
        current_logger (Optional[logging.Logger]): Logger to use. Defaults to
            the module logger.
        symbols (Optional[Dict[str, str]]): Unused by the dispatch itself;
            accepted so callers can pass their symbol table through uniformly.
        exc_info (bool): Include exception information.
    """
    effective_logger = current_logger if current_logger else module_logger

    if level == "warning":
        effective_logger.warning(message, exc_info=exc_info)
    elif level == "error":
        effective_logger.error(message, exc_info=exc_info)
    elif level == "critical":
        effective_logger.critical(message, exc_info=exc_info)
    elif level == "debug":
        effective_logger.debug(message, exc_info=exc_info)
    else:
        effective_logger.info(message, exc_info=exc_info)


@dataclass(frozen=True)
class CommandOutcome:
    """Result of one `CommandRunner.execute` call."""

    command: str
    returncode: int
    output: str = ""
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """
    Runs command lines through the host shell, or prints them in dry-run mode.

    Combined stdout/stderr of each command is re-emitted through the logger,
    so whatever handlers are attached (console and the append-only run log)
    receive it in execution order. `history` keeps every command line seen,
    real or simulated.
    """

    def __init__(
        self,
        dry_run: bool = False,
        logger: Optional[logging.Logger] = None,
        symbols: Optional[Dict[str, str]] = None,
        shell_executable: str = "/bin/bash",
    ):
        self.dry_run = dry_run
        self.logger = logger or module_logger
        self.symbols = symbols or SYMBOLS_DEFAULT
        self.shell_executable = shell_executable
        self.history: List[str] = []

    def execute(
        self,
        command_line: str,
        cmd_input: Optional[str] = None,
        cwd: Optional[str] = None,
    ) -> CommandOutcome:
        """
        Execute `command_line` (or simulate it in dry-run mode).

        Args:
            command_line: Shell command line, run with `shell_executable`.
            cmd_input: Text passed on standard input. Never logged, so it is
                the channel for SQL and other payloads carrying secrets.
            cwd: Working directory for the command.

        Returns:
            CommandOutcome. A non-zero exit status is reported, not raised;
            the caller applies its failure policy.
        """
        self.history.append(command_line)
        location = f" (in {cwd})" if cwd else ""
        stdin_note = (
            f" [stdin: {len(cmd_input)} bytes]" if cmd_input is not None else ""
        )

        if self.dry_run:
            self.logger.info(f"[dry-run] {command_line}{location}{stdin_note}")
            return CommandOutcome(command_line, 0, "", dry_run=True)

        self.logger.info(
            f"{self.symbols.get('gear', '⚙️')} Executing: {command_line}{location}{stdin_note}"
        )
        try:
            result = subprocess.run(
                command_line,
                shell=True,
                executable=self.shell_executable,
                input=cmd_input,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                cwd=cwd,
                check=False,
            )
        except OSError as e:
            self.logger.error(
                f"{self.symbols.get('error', '❌')} Could not start `{command_line}`: {e}"
            )
            return CommandOutcome(command_line, 127, str(e))

        output = result.stdout or ""
        for line in output.rstrip().splitlines():
            self.logger.info(f"   {line}")

        if result.returncode != 0:
            self.logger.error(
                f"{self.symbols.get('error', '❌')} Command `{command_line}` failed (rc {result.returncode})."
            )
        return CommandOutcome(command_line, result.returncode, output)


def command_exists(command_name: str) -> bool:
    """
    Check if a command exists in the system's PATH.

    Parameters:
        command_name (str): The name of the command to check for existence.

    Returns:
        bool: True if the command is found in the system's PATH, False otherwise.
    """
    return shutil.which(command_name) is not None
