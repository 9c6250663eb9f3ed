# nexus_installer/services/nginx.py
# -*- coding: utf-8 -*-
"""
Handles the Nginx site for Nexus AMS and its Let's Encrypt certificate.

The site file is rendered from the configuration and blindly overwritten on
every run; identical input yields an identical file. The TLS variant is only
written once the certificate for the domain exists, so `nginx -t` passes on a
fresh host before Certbot has run.
"""

import logging
import re
import shlex
from pathlib import Path
from typing import Optional

from common.command_utils import log_installer
from nexus_installer import config
from nexus_installer.services.packages import derive_php_fpm_socket
from nexus_installer.step_executor import StageContext
from nexus_installer.templates import render_nginx_site

module_logger = logging.getLogger(__name__)


def is_certifiable_domain(domain: str) -> bool:
    """Certbot needs a public FQDN: not an IP address, not localhost."""
    is_ip_address = bool(
        re.fullmatch(r"^\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}$", domain)
    )
    is_localhost = domain.lower() == "localhost" or domain.lower().endswith(".localhost")
    return "." in domain and not is_ip_address and not is_localhost and ":" not in domain


def certificate_dir(ctx: StageContext) -> Path:
    return ctx.host_path(f"{config.LETSENCRYPT_LIVE_DIR}/{ctx.settings.domain}")


def existing_certificate_dir(ctx: StageContext) -> Optional[str]:
    live_dir = certificate_dir(ctx)
    if (live_dir / "fullchain.pem").exists():
        return str(live_dir)
    return None


def write_site(ctx: StageContext) -> None:
    site_path = ctx.host_path(ctx.packages.path("nginx_site"))
    content = render_nginx_site(
        domain=ctx.settings.domain,
        app_path=ctx.settings.app_path,
        php_fpm_socket=derive_php_fpm_socket(ctx),
        certificate_dir=existing_certificate_dir(ctx),
        cache_dir=str(ctx.host_path(config.NGINX_CACHE_DIR)),
    )
    ctx.write_file("proxy.write_site", str(site_path), content)


def enable_site(ctx: StageContext) -> None:
    """Symlink into sites-enabled and drop the default site, where the family uses sites-enabled."""
    enabled = ctx.packages.path("nginx_site_enabled")
    if enabled:
        enabled_path = ctx.host_path(enabled)
        if enabled_path.is_symlink():
            ctx.logger.info(f"{enabled_path} already enabled.")
        else:
            site_path = ctx.host_path(ctx.packages.path("nginx_site"))
            ctx.run_step(
                "proxy.enable_site",
                f"ln -sf {shlex.quote(str(site_path))} {shlex.quote(str(enabled_path))}",
            )

    default_enabled = ctx.packages.path("nginx_default_site_enabled")
    if default_enabled:
        default_path = ctx.host_path(default_enabled)
        if default_path.exists() or default_path.is_symlink():
            ctx.run_step(
                "proxy.disable_default_site", f"rm -f {shlex.quote(str(default_path))}"
            )


def validate_and_reload(ctx: StageContext) -> None:
    ctx.run_step("proxy.validate", "nginx -t")
    ctx.service("reload", "web_server", step_id="proxy.reload")


def issue_certificate(ctx: StageContext) -> bool:
    """
    Request a certificate unless the domain cannot be certified or one is
    already present.

    Returns:
        True if a request was made.
    """
    domain = ctx.settings.domain
    if not is_certifiable_domain(domain):
        log_installer(
            f"{ctx.symbols.get('warning', '!')} Skipping Certbot: DOMAIN ('{domain}') "
            "is an IP, localhost, or not an FQDN. Certbot requires a public FQDN.",
            "warning",
            ctx.logger,
        )
        return False
    if existing_certificate_dir(ctx):
        ctx.logger.info(f"Certificate for {domain} already present. Skipping issuance.")
        return False

    ctx.run_step(
        "certbot.issue",
        f"certbot certonly --webroot -w {shlex.quote(ctx.settings.app_path + '/public')} "
        f"-d {shlex.quote(domain)} --non-interactive --agree-tos "
        f"-m {shlex.quote(ctx.settings.admin_email)}",
    )
    return True


def configure_reverse_proxy(ctx: StageContext) -> None:
    cache_dir = shlex.quote(str(ctx.host_path(config.NGINX_CACHE_DIR)))
    ctx.run_step("proxy.cache_dir", f"mkdir -p {cache_dir}")
    ctx.run_step(
        "proxy.cache_dir", f"chown {ctx.web_user}:{ctx.web_user} {cache_dir}"
    )

    write_site(ctx)
    enable_site(ctx)
    validate_and_reload(ctx)

    ctx.packages.install("certbot")
    requested = issue_certificate(ctx)
    if requested or existing_certificate_dir(ctx):
        ctx.run_step("certbot.renew_dry_run", "certbot renew --dry-run")

    if requested and existing_certificate_dir(ctx):
        log_installer(
            f"{ctx.symbols.get('success', '')} Certificate issued. Switching the site to HTTPS.",
            "success",
            ctx.logger,
        )
        write_site(ctx)
    validate_and_reload(ctx)
