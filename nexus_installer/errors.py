# nexus_installer/errors.py
# -*- coding: utf-8 -*-
"""
Error kinds raised by the installer.

Precondition failures abort before any stage runs. Essential-step failures
abort the pipeline. Advisory failures are never raised; they are logged and
counted. A declined confirmation is a clean abort.
"""

from enum import Enum
from typing import Iterable, Optional

from common.command_utils import CommandOutcome


class ErrorKind(str, Enum):
    PRECONDITION = "precondition"
    ESSENTIAL = "essential"
    ADVISORY = "advisory"
    USER_ABORT = "user_abort"


class InstallerError(Exception):
    """Base class for installer failures."""

    kind: ErrorKind = ErrorKind.ESSENTIAL


class PreconditionError(InstallerError):
    """Not root, unsupported OS, missing configuration and similar."""

    kind = ErrorKind.PRECONDITION


class UnsupportedOSError(PreconditionError):
    pass


class UnknownProfileError(PreconditionError):
    def __init__(self, profile_name: str, known: Iterable[str]):
        self.profile_name = profile_name
        super().__init__(
            f"Unknown install profile '{profile_name}'. "
            f"Known profiles: {', '.join(known)}"
        )


class MissingConfigurationError(PreconditionError):
    def __init__(self, missing_keys: Iterable[str], source: Optional[str] = None):
        self.missing_keys = list(missing_keys)
        where = f" in {source}" if source else ""
        super().__init__(
            f"Missing required configuration{where}: {', '.join(self.missing_keys)}"
        )


class EssentialStepError(InstallerError):
    """An essential step exited non-zero."""

    kind = ErrorKind.ESSENTIAL

    def __init__(self, step_id: str, outcome: CommandOutcome):
        self.step_id = step_id
        self.outcome = outcome
        super().__init__(
            f"Essential step '{step_id}' failed (rc {outcome.returncode}): {outcome.command}"
        )


class UserAbortError(InstallerError):
    """The interactive confirmation was declined."""

    kind = ErrorKind.USER_ABORT
