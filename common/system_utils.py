# common/system_utils.py
# -*- coding: utf-8 -*-
"""
System-level probes for the installer.

Everything here is read-only: OS identification, web-server account lookup,
and the host-state checks the stages use to stay idempotent (active swap,
fstab entries, crontab lines, repository markers, listening ports). None of
these run external commands, so they give the same answers in dry-run mode.
"""

import logging
import os
import pwd
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional, Set

from nexus_installer import config
from nexus_installer.errors import PreconditionError, UnsupportedOSError

module_logger = logging.getLogger(__name__)

DEBIAN_LIKE_IDS: Set[str] = {"debian", "ubuntu", "linuxmint", "pop", "raspbian"}
REDHAT_LIKE_IDS: Set[str] = {
    "rhel",
    "centos",
    "fedora",
    "rocky",
    "almalinux",
    "ol",
}

PACKAGE_MANAGERS: Dict[str, str] = {"debian": "apt-get", "redhat": "dnf"}


@dataclass(frozen=True)
class OsInfo:
    """Identity of the host as read from os-release."""

    os_id: str
    version_id: str
    pretty_name: str
    package_family: str

    @property
    def package_manager(self) -> str:
        return PACKAGE_MANAGERS[self.package_family]


def parse_os_release(text: str) -> Dict[str, str]:
    """Parse os-release `KEY=value` lines; quotes are stripped."""
    values: Dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        values[key.strip()] = value
    return values


def detect_os(
    os_release_path: Path = Path("/etc/os-release"),
    current_logger: Optional[logging.Logger] = None,
) -> OsInfo:
    """
    Determine the package family of the host.

    Raises:
        PreconditionError: If the os-release file is missing.
        UnsupportedOSError: If neither ID nor ID_LIKE names a known family.
    """
    logger_to_use = current_logger if current_logger else module_logger
    if not os_release_path.is_file():
        raise PreconditionError(
            f"{os_release_path} not found. Unsupported OS."
        )

    values = parse_os_release(os_release_path.read_text(encoding="utf-8"))
    os_id = values.get("ID", "").lower()
    candidates = [os_id] + values.get("ID_LIKE", "").lower().split()

    family = None
    for candidate in candidates:
        if candidate in DEBIAN_LIKE_IDS:
            family = "debian"
            break
        if candidate in REDHAT_LIKE_IDS:
            family = "redhat"
            break

    if family is None:
        raise UnsupportedOSError(
            f"Unsupported OS '{values.get('PRETTY_NAME', os_id or 'unknown')}'. "
            "Supported families: Debian-like, RedHat-like."
        )

    info = OsInfo(
        os_id=os_id,
        version_id=values.get("VERSION_ID", ""),
        pretty_name=values.get("PRETTY_NAME", os_id),
        package_family=family,
    )
    logger_to_use.info(
        f"Detected {info.pretty_name} ({info.package_family} family, {info.package_manager})."
    )
    return info


def user_exists(name: str) -> bool:
    try:
        pwd.getpwnam(name)
        return True
    except KeyError:
        return False


def detect_web_user(
    candidates: Iterable[str] = config.WEB_USER_CANDIDATES,
    default: str = config.WEB_USER_DEFAULT,
    current_logger: Optional[logging.Logger] = None,
) -> str:
    """
    Return the first conventional web-server account present on the host,
    else `default` with a warning. Never fails.
    """
    logger_to_use = current_logger if current_logger else module_logger
    for name in candidates:
        if user_exists(name):
            logger_to_use.info(f"Web process identity: {name}")
            return name
    logger_to_use.warning(
        f"None of {', '.join(candidates)} exists yet; assuming '{default}'."
    )
    return default


def is_root() -> bool:
    return os.geteuid() == 0


def require_root() -> None:
    if not is_root():
        raise PreconditionError("Run as root (sudo).")


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return ""


def is_swap_active(swap_path: str, proc_swaps: Path) -> bool:
    """True if `swap_path` is listed in /proc/swaps."""
    for line in _read_text(proc_swaps).splitlines()[1:]:
        fields = line.split()
        if fields and fields[0] == swap_path:
            return True
    return False


def fstab_has_entry(device: str, fstab: Path) -> bool:
    """True if a non-comment fstab line mounts `device`."""
    for line in _read_text(fstab).splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if stripped.split()[0] == device:
            return True
    return False


def file_has_line(path: Path, expected_line: str) -> bool:
    """Exact whole-line match, ignoring trailing whitespace."""
    wanted = expected_line.rstrip()
    return any(
        line.rstrip() == wanted for line in _read_text(path).splitlines()
    )


def repository_marker_present(repository_dir: Path, marker: str) -> bool:
    """True if any file in the repository-source directory contains `marker` in its name."""
    if not repository_dir.is_dir():
        return False
    return any(marker in entry.name for entry in repository_dir.iterdir())


def listening_ports(*proc_net_files: Path) -> Set[int]:
    """Local TCP ports in LISTEN state, read from /proc/net/tcp{,6}."""
    ports: Set[int] = set()
    for proc_file in proc_net_files:
        for line in _read_text(proc_file).splitlines()[1:]:
            fields = line.split()
            # st == 0A is TCP_LISTEN
            if len(fields) > 3 and fields[3] == "0A":
                try:
                    ports.add(int(fields[1].rsplit(":", 1)[1], 16))
                except (IndexError, ValueError):
                    continue
    return ports


def size_to_mib(size: str) -> int:
    """Convert a fallocate-style size ("4G", "512M") to MiB."""
    units = {"K": 1.0 / 1024, "M": 1, "G": 1024, "T": 1024 * 1024}
    text = size.strip().upper().rstrip("B")
    if text and text[-1] in units:
        return max(1, int(float(text[:-1]) * units[text[-1]]))
    return max(1, int(text) // (1024 * 1024))
