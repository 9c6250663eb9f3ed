# tests/conftest.py
# -*- coding: utf-8 -*-
"""
Shared fixtures: a host tree under tmp_path, a configuration factory and a
recording runner that emulates the file-writing commands the stages issue.
"""

import logging
import shlex
import shutil
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import pytest

from common.command_utils import CommandOutcome, CommandRunner
from common.constants_loader import get_family_constants
from common.system_utils import OsInfo
from nexus_installer.config import HostPaths
from nexus_installer.config_models import InstallSettings
from nexus_installer.profiles import StageFlags, resolve_profile
from nexus_installer.step_executor import StageContext

UBUNTU_OS_RELEASE = """\
PRETTY_NAME="Ubuntu 24.04 LTS"
NAME="Ubuntu"
VERSION_ID="24.04"
ID=ubuntu
ID_LIKE=debian
"""

PROC_SWAPS_HEADER = "Filename\tType\tSize\tUsed\tPriority\n"


class EmulatingRunner(CommandRunner):
    """
    Records every command and applies the effect of the ones that write
    files, so a second pipeline run sees the state the first one left.
    Commands containing any of `fail_on` exit 1.
    With `issue_certificates`, `certbot certonly` leaves a certificate behind.
    """

    def __init__(
        self,
        host_paths: HostPaths,
        fail_on: Sequence[str] = (),
        issue_certificates: bool = False,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(dry_run=False, logger=logger or logging.getLogger("tests.runner"))
        self.host_paths = host_paths
        self.fail_on = tuple(fail_on)
        self.issue_certificates = issue_certificates
        self.calls: List[Tuple[str, Optional[str], Optional[str]]] = []

    def execute(self, command_line, cmd_input=None, cwd=None):
        self.history.append(command_line)
        self.calls.append((command_line, cmd_input, cwd))
        if any(marker in command_line for marker in self.fail_on):
            return CommandOutcome(command_line, 1, "simulated failure")
        self._emulate(command_line, cmd_input, cwd)
        return CommandOutcome(command_line, 0, "")

    def count(self, fragment: str) -> int:
        return sum(1 for command in self.history if fragment in command)

    def _emulate(self, command_line, cmd_input, cwd):
        if "ondrej/php" in command_line:
            self._touch_repository("ondrej-ubuntu-php-noble.sources")
        if "nodesource" in command_line:
            self._touch_repository("nodesource.list")
        if "key:generate" in command_line and cwd:
            env_file = Path(cwd) / ".env"
            with env_file.open("a", encoding="utf-8") as handle:
                handle.write("APP_KEY=base64:dGVzdA==\n")

        tokens = shlex.split(command_line)
        if not tokens:
            return
        program, args = tokens[0], tokens[1:]
        if program == "tee":
            append = args[0] == "-a"
            target = Path(args[1] if append else args[0])
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("a" if append else "w", encoding="utf-8") as handle:
                handle.write(cmd_input or "")
        elif program == "git" and args[:1] == ["clone"]:
            (Path(args[2]) / ".git").mkdir(parents=True)
        elif program == "mv":
            Path(args[0]).rename(args[1])
        elif program == "cp":
            source, target = Path(args[0]), Path(args[1])
            if source.exists():
                shutil.copyfile(source, target)
            else:
                target.touch()
        elif program == "mkdir":
            for path in args[1:] if args[:1] == ["-p"] else args:
                Path(path).mkdir(parents=True, exist_ok=True)
        elif program == "rmdir":
            Path(args[0]).rmdir()
        elif program == "ln":
            link = Path(args[-1])
            link.parent.mkdir(parents=True, exist_ok=True)
            if link.is_symlink():
                link.unlink()
            link.symlink_to(args[-2])
        elif program == "rm":
            Path(args[-1]).unlink(missing_ok=True)
        elif program == "swapon":
            proc_swaps = self.host_paths.resolve(self.host_paths.proc_swaps)
            proc_swaps.parent.mkdir(parents=True, exist_ok=True)
            if not proc_swaps.exists():
                proc_swaps.write_text(PROC_SWAPS_HEADER, encoding="utf-8")
            with proc_swaps.open("a", encoding="utf-8") as handle:
                handle.write(f"{args[0]}\tfile\t4194300\t0\t-2\n")
        elif program == "certbot" and args[:1] == ["certonly"] and self.issue_certificates:
            domain = args[args.index("-d") + 1]
            live_dir = self.host_paths.resolve(f"/etc/letsencrypt/live/{domain}")
            live_dir.mkdir(parents=True, exist_ok=True)
            (live_dir / "fullchain.pem").touch()
            (live_dir / "privkey.pem").touch()
        elif program == "php" and any(a.startswith("--install-dir=") for a in args):
            install_dir = next(a for a in args if a.startswith("--install-dir="))
            filename = next(a for a in args if a.startswith("--filename="))
            target = Path(install_dir.split("=", 1)[1]) / filename.split("=", 1)[1]
            target.parent.mkdir(parents=True, exist_ok=True)
            target.touch()

    def _touch_repository(self, name):
        repository_dir = self.host_paths.resolve("/etc/apt/sources.list.d")
        repository_dir.mkdir(parents=True, exist_ok=True)
        (repository_dir / name).touch()


@pytest.fixture(autouse=True)
def known_users(mocker):
    """Account lookups never reach the real host; every user exists unless a test says otherwise."""
    return mocker.patch("common.system_utils.user_exists", return_value=True)


@pytest.fixture
def rocky() -> OsInfo:
    return OsInfo("rocky", "9.4", "Rocky Linux 9.4", "redhat")


@pytest.fixture
def host_paths(tmp_path) -> HostPaths:
    """A host tree under tmp_path with an Ubuntu os-release."""
    paths = HostPaths(root=tmp_path / "host")
    os_release = paths.resolve(paths.os_release)
    os_release.parent.mkdir(parents=True)
    os_release.write_text(UBUNTU_OS_RELEASE, encoding="utf-8")
    return paths


@pytest.fixture
def settings_values(host_paths):
    """Every key a full install needs, with paths inside the host tree."""
    return {
        "install_profile": "full",
        "domain": "nexus.example.com",
        "admin_email": "admin@example.com",
        "app_path": str(host_paths.resolve("/var/www/nexus")),
        "subs_path": str(host_paths.resolve("/var/www/nexus-subs")),
        "db_password": "s3cret'pw",
        "pw_api_key": "pw-key",
        "pw_api_mutation_key": "pw-mutation",
        "nexus_api_token": "nexus-token",
        "pw_alliance_id": "1234",
        "pw_api_token": "subs-token",
    }


@pytest.fixture
def make_settings(settings_values):
    def _make(**overrides) -> InstallSettings:
        values = dict(settings_values)
        values.update(overrides)
        return InstallSettings(**values)

    return _make


@pytest.fixture
def ubuntu() -> OsInfo:
    return OsInfo("ubuntu", "24.04", "Ubuntu 24.04 LTS", "debian")


@pytest.fixture
def emulating_runner(host_paths) -> EmulatingRunner:
    return EmulatingRunner(host_paths)


@pytest.fixture
def make_context(host_paths, make_settings, ubuntu):
    def _make(
        runner: CommandRunner,
        profile: str = "full",
        flags: Optional[StageFlags] = None,
        settings: Optional[InstallSettings] = None,
        os_info: Optional[OsInfo] = None,
        web_user: str = "www-data",
        **setting_overrides,
    ) -> StageContext:
        os_info = os_info or ubuntu
        return StageContext(
            settings=settings or make_settings(install_profile=profile, **setting_overrides),
            flags=flags or resolve_profile(profile),
            runner=runner,
            os_info=os_info,
            web_user=web_user,
            family_constants=get_family_constants(os_info.package_family, os_info.os_id),
            host_paths=host_paths,
            profile=profile,
            logger=logging.getLogger("tests.stage"),
        )

    return _make


@pytest.fixture
def make_runner(host_paths):
    """EmulatingRunner factory for runs that need failing commands or a fresh history."""

    def _make(fail_on: Sequence[str] = (), issue_certificates: bool = False) -> EmulatingRunner:
        return EmulatingRunner(
            host_paths, fail_on=fail_on, issue_certificates=issue_certificates
        )

    return _make
