# nexus_installer/profiles.py
# -*- coding: utf-8 -*-
"""
Install profiles and the stage flags they resolve to.

Every profile starts from the full baseline (all stages on) and forces a
fixed set of stages off. Resolution is pure: the same name always yields the
same flags.
"""

import dataclasses
from dataclasses import dataclass
from typing import Dict, Mapping

from nexus_installer.errors import UnknownProfileError


@dataclass(frozen=True)
class StageFlags:
    """Stage enablement derived from one profile name."""

    database: bool = True
    nginx: bool = True
    backend: bool = True
    subs: bool = True
    supervisor: bool = True
    supervisor_app_workers: bool = True
    cron: bool = True
    initial_jobs: bool = True
    admin_user: bool = True

    @property
    def remote_database(self) -> bool:
        """The back end talks to a database this host does not install."""
        return self.backend and not self.database

    @property
    def local_database(self) -> bool:
        return self.database

    def as_dict(self) -> Dict[str, bool]:
        values = dataclasses.asdict(self)
        values["remote_database"] = self.remote_database
        return values


PROFILE_OVERRIDES: Mapping[str, Mapping[str, bool]] = {
    "full": {},
    "app-web-subs-remote-db": {"database": False},
    "web-only": {"database": False, "subs": False},
    "db-only": {
        "nginx": False,
        "backend": False,
        "subs": False,
        "supervisor": False,
        "supervisor_app_workers": False,
        "cron": False,
        "initial_jobs": False,
        "admin_user": False,
    },
    "subs-only": {
        "database": False,
        "nginx": False,
        "backend": False,
        "supervisor_app_workers": False,
        "cron": False,
        "initial_jobs": False,
        "admin_user": False,
    },
}

# Interactive menu numbers, in menu order.
PROFILE_CHOICES: Mapping[str, str] = {
    "1": "full",
    "2": "app-web-subs-remote-db",
    "3": "web-only",
    "4": "db-only",
    "5": "subs-only",
}

DEFAULT_PROFILE: str = "full"


def resolve_profile(profile_name: str) -> StageFlags:
    """
    Map a profile name to its stage flags.

    Raises:
        UnknownProfileError: For names not in PROFILE_OVERRIDES.
    """
    name = (profile_name or "").strip()
    if name not in PROFILE_OVERRIDES:
        raise UnknownProfileError(name, PROFILE_OVERRIDES.keys())
    return dataclasses.replace(StageFlags(), **PROFILE_OVERRIDES[name])
