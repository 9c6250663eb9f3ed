# nexus_installer/config.py
# -*- coding: utf-8 -*-
"""
Centralized static constants and definitions for the Nexus installer.

This module defines truly static values: the script version, well-known file
locations, logging symbols and the fixed lists of bootstrap jobs. Runtime
configuration (domain, paths, credentials, toggles) is handled by
'nexus_installer/config_models.py' and 'nexus_installer/config_loader.py'.
"""

from dataclasses import dataclass
from pathlib import Path

SCRIPT_VERSION: str = "1.1.0"

# Configuration file read by --non-interactive runs and written after the
# interactive prompt flow.
ENV_FILE_PATH: Path = Path("./install.env")

# Append-only run log shared by every invocation.
LOG_FILE_PATH: Path = Path("/var/log/nexus-install.log")

LOG_PREFIX: str = "[NEXUS-INSTALL]"

SWAPFILE_PATH: str = "/swapfile"
COMPOSER_BIN_PATH: str = "/usr/local/bin/composer"
PHP_BIN_PATH: str = "/usr/bin/php"
NODE_BIN_PATH: str = "/usr/bin/node"
LETSENCRYPT_LIVE_DIR: str = "/etc/letsencrypt/live"
NGINX_CACHE_DIR: str = "/var/cache/nginx/nexus"

APP_CLONE_DIR_NAME: str = "Nexus-AMS"
SUBS_CLONE_DIR_NAME: str = "Nexus-AMS-Subs"

# Conventional web-server service accounts, in probe order.
WEB_USER_CANDIDATES: tuple = ("www-data", "nginx", "apache", "http")
WEB_USER_DEFAULT: str = "www-data"

# One-time Laravel jobs run after the first deploy, in this order.
INITIAL_ARTISAN_JOBS: tuple = (
    "military:sign-in",
    "sync:nations",
    "sync:alliances",
    "sync:wars",
    "sync:treaties",
    "taxes:collect",
    "trades:update",
)

SUPERVISOR_PROGRAM_APP_WORKER: str = "nexus-worker"
SUPERVISOR_PROGRAM_SYNC_WORKER: str = "nexus-worker-sync"
SUPERVISOR_PROGRAM_SUBS: str = "nexus-subs"

SYMBOLS_DEFAULT: dict[str, str] = {
    "success": "✅",
    "error": "❌",
    "warning": "⚠️",
    "info": "ℹ️",
    "step": "➡️",
    "gear": "⚙️",
    "package": "📦",
    "rocket": "🚀",
    "sparkles": "✨",
    "critical": "🔥",
    "debug": "🐛",
    "skip": "⏭️",
}


@dataclass(frozen=True)
class HostPaths:
    """
    Host files read by the idempotency probes and written by stage actions.

    `root` lets tests point every host path into a temporary directory; on a
    real host it is "/".
    """

    root: Path = Path("/")
    os_release: str = "/etc/os-release"
    proc_swaps: str = "/proc/swaps"
    fstab: str = "/etc/fstab"
    crontab: str = "/etc/crontab"
    proc_net_tcp: str = "/proc/net/tcp"
    proc_net_tcp6: str = "/proc/net/tcp6"

    def resolve(self, path: str) -> Path:
        """Map an absolute host path under `root`."""
        if self.root == Path("/"):
            return Path(path)
        return self.root / str(path).lstrip("/")
