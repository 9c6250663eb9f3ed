# nexus_installer/services/subs.py
# -*- coding: utf-8 -*-
"""Nexus AMS Subs: .env and node dependencies."""

import shlex
from typing import Dict

from nexus_installer.config_models import InstallSettings
from nexus_installer.services.backend import ensure_env_file
from nexus_installer.step_executor import StageContext


def subs_env_values(settings: InstallSettings) -> Dict[str, str]:
    return {
        "PW_API_TOKEN": settings.pw_api_token,
        "NEXUS_API_URL": settings.nexus_api_url,
        "NEXUS_API_TOKEN": settings.nexus_api_token,
        "ENABLE_SNAPSHOTS": "true" if settings.enable_snapshots else "false",
    }


def configure_subs(ctx: StageContext) -> None:
    subs_path = ctx.settings.subs_path
    ensure_env_file(ctx, subs_path, subs_env_values(ctx.settings))
    ctx.run_step("subs.dependencies", "npm ci", cwd=subs_path)
    ctx.run_step(
        "subs.ownership",
        f"chown -R {ctx.web_user}:{ctx.web_user} {shlex.quote(subs_path)}",
    )
