# common/package_manager.py
# -*- coding: utf-8 -*-
import logging
import shlex
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from common.command_utils import CommandOutcome
from common.constants_loader import format_value, get_package_list
from common.system_utils import repository_marker_present

StepRunner = Callable[..., CommandOutcome]


class PackageManager:
    """
    Family-neutral wrapper over apt-get / dnf.

    Command templates, package groups and repository markers come from the
    family block of packages.yaml. Every command goes through `run_step`,
    which applies the failure policy of the step id it is given.
    """

    def __init__(
        self,
        family_constants: Dict[str, Any],
        run_step: StepRunner,
        php_version: str,
        repository_root: Optional[Callable[[str], Path]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.constants = family_constants
        self.run_step = run_step
        self.php_version = php_version
        self.resolve = repository_root or Path
        self.logger = logger or logging.getLogger(__name__)

    def _command(self, name: str, **fmt: str) -> str:
        return self.constants["commands"][name].format(**fmt)

    def update(self) -> CommandOutcome:
        self.logger.info("Updating package lists...")
        return self.run_step("packages.update", self._command("update"))

    def upgrade(self) -> CommandOutcome:
        self.logger.info("Upgrading installed packages...")
        return self.run_step("packages.upgrade", self._command("upgrade"))

    def packages(self, group: str) -> List[str]:
        return get_package_list(
            self.constants, group, php_version=self.php_version
        )

    def install(self, packages: Union[List[str], str]) -> CommandOutcome:
        """
        Install one or more packages, or a named group from packages.yaml
        when given a string.
        """
        names = self.packages(packages) if isinstance(packages, str) else packages
        self.logger.info(f"Committing installation for: {', '.join(names)}")
        return self.run_step(
            "packages.install",
            self._command(
                "install", packages=" ".join(shlex.quote(n) for n in names)
            ),
        )

    def service_name(self, role: str) -> str:
        return format_value(
            self.constants["services"][role], php_version=self.php_version
        )

    def path(self, name: str) -> Optional[str]:
        value = self.constants["paths"].get(name)
        if value is None:
            return None
        return format_value(value, php_version=self.php_version)

    def repository_present(self, repo: str) -> bool:
        marker = self.constants["repositories"][repo]["marker"]
        repository_dir = self.resolve(self.constants["repository_dir"])
        return repository_marker_present(repository_dir, marker)

    def add_repository(self, repo: str, refresh: bool = True) -> bool:
        """
        Add a third-party repository unless its marker is already present in
        the repository-source directory.

        Returns:
            True if the repository was added, False if it was already there.
        """
        details = self.constants["repositories"][repo]
        if self.repository_present(repo):
            self.logger.info(
                f"Repository '{repo}' already configured (marker '{details['marker']}'). Skipping."
            )
            return False

        self.logger.info(f"Adding repository: {repo}")
        for command in format_value(details["commands"], php_version=self.php_version):
            self.run_step("packages.add_repository", command)
        if refresh:
            self.update()
        return True
