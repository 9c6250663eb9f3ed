# nexus_installer/services/packages.py
# -*- coding: utf-8 -*-
"""
PHP, web server and cache store packages.

The database server package is installed by the database stage so that a
database-only host never pulls in PHP or Nginx.
"""

import logging
from pathlib import Path

from common import system_utils
from common.command_utils import log_installer
from nexus_installer.step_executor import StageContext

module_logger = logging.getLogger(__name__)


def derive_php_fpm_socket(ctx: StageContext) -> str:
    """
    Locate the PHP-FPM socket: the family default if it exists on the host,
    else any php*-fpm socket in the same directory, else the family default.
    The result is cached in `ctx.derived`.
    """
    if "php_fpm_socket" in ctx.derived:
        return ctx.derived["php_fpm_socket"]

    default_socket = ctx.packages.path("php_fpm_socket")
    socket = default_socket
    host_default = ctx.host_path(default_socket)
    if not host_default.exists() and host_default.parent.is_dir():
        candidates = sorted(host_default.parent.glob("php*-fpm.sock"))
        if candidates:
            socket = str(Path(default_socket).parent / candidates[-1].name)
            ctx.logger.info(
                f"PHP-FPM socket {default_socket} not found; using {socket}."
            )
    ctx.derived["php_fpm_socket"] = socket
    return socket


def refresh_web_user(ctx: StageContext) -> str:
    """
    Detect the web process identity again once PHP-FPM and the web server
    are installed, since their packages create the account. The result is
    cached in `ctx.derived` and replaces `ctx.web_user`.
    """
    web_user = ctx.web_user
    if not ctx.dry_run and not system_utils.user_exists(web_user):
        web_user = system_utils.detect_web_user(default=web_user, current_logger=ctx.logger)
        if web_user != ctx.web_user:
            log_installer(
                f"Web process identity is now '{web_user}' (was '{ctx.web_user}').",
                "info",
                ctx.logger,
            )
    ctx.web_user = web_user
    ctx.derived["web_user"] = web_user
    return web_user


def install_core_packages(ctx: StageContext) -> None:
    """PHP (with the third-party repository) for the back end, Nginx for the site."""
    if ctx.flags.backend:
        ctx.packages.add_repository("php")
        ctx.packages.install("php")
        ctx.service("enable", "php_fpm")
        derive_php_fpm_socket(ctx)

    if ctx.flags.nginx:
        ctx.packages.install("web_server")
        ctx.service("enable", "web_server")

    refresh_web_user(ctx)


def install_cache_store(ctx: StageContext) -> None:
    """Redis server and PHP extension, memory limits upserted in redis.conf."""
    ctx.packages.install(ctx.packages.packages("cache_store") + ctx.packages.packages("php_redis"))
    ctx.service("enable", "cache_store")
    # Load the redis extension into the running FPM pool.
    ctx.service("restart", "php_fpm", step_id="service.restart")

    redis_conf = str(ctx.host_path(ctx.packages.path("redis_conf")))
    changed = ctx.upsert_file_keys(
        "cache.configure",
        redis_conf,
        {
            "maxmemory": ctx.settings.redis_maxmemory,
            "maxmemory-policy": ctx.settings.redis_maxmemory_policy,
        },
        delimiter=" ",
    )
    if changed:
        ctx.service("restart", "cache_store", step_id="service.restart")
    else:
        log_installer("Redis memory settings unchanged.", "debug", ctx.logger)
