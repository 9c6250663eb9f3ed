# nexus_installer/services/backend.py
# -*- coding: utf-8 -*-
"""
Laravel back end (.env, dependencies, key, schema) and the Vite front-end
build of Nexus AMS.
"""

import logging
import shlex
from pathlib import Path
from typing import Dict

from common.command_utils import log_installer
from common.file_utils import read_key
from nexus_installer import config
from nexus_installer.config_models import InstallSettings
from nexus_installer.step_executor import StageContext

module_logger = logging.getLogger(__name__)

REDIS_ENV_VALUES: Dict[str, str] = {
    "REDIS_CLIENT": "phpredis",
    "REDIS_HOST": "127.0.0.1",
    "REDIS_PORT": "6379",
    "CACHE_STORE": "redis",
    "QUEUE_CONNECTION": "redis",
    "SESSION_DRIVER": "redis",
}


def backend_env_values(settings: InstallSettings) -> Dict[str, str]:
    """Keys written to the application's .env, in file order."""
    values = {
        "APP_NAME": settings.app_name,
        "APP_ENV": "production",
        "APP_DEBUG": "false",
        "APP_URL": settings.app_url,
        "DB_CONNECTION": "mysql",
        "DB_HOST": settings.db_host,
        "DB_PORT": str(settings.db_port),
        "DB_DATABASE": settings.db_database,
        "DB_USERNAME": settings.db_username,
        "DB_PASSWORD": settings.db_password,
        "PW_API_KEY": settings.pw_api_key,
        "PW_API_MUTATION_KEY": settings.pw_api_mutation_key,
        "NEXUS_API_TOKEN": settings.nexus_api_token,
        "PW_ALLIANCE_ID": settings.pw_alliance_id,
    }
    if settings.install_redis:
        values.update(REDIS_ENV_VALUES)
    return values


def ensure_env_file(
    ctx: StageContext, project_path: str, values: Dict[str, str]
) -> Path:
    """
    Create `.env` from `.env.example` when absent, upsert `values` and
    restrict it to mode 600.
    """
    env_path = Path(project_path) / ".env"
    if not env_path.is_file():
        example = Path(project_path) / ".env.example"
        ctx.run_step(
            "env.copy_example",
            f"cp {shlex.quote(str(example))} {shlex.quote(str(env_path))}",
        )
    ctx.upsert_file_keys("env.write", str(env_path), values)
    ctx.run_step("env.permissions", f"chmod 600 {shlex.quote(str(env_path))}")
    return env_path


def app_key_is_set(env_path: Path) -> bool:
    if not env_path.is_file():
        return False
    return read_key(env_path.read_text(encoding="utf-8"), "APP_KEY") != ""


def configure_backend(ctx: StageContext) -> None:
    app_path = ctx.settings.app_path
    env_path = ensure_env_file(ctx, app_path, backend_env_values(ctx.settings))

    ctx.run_step(
        "backend.dependencies",
        "COMPOSER_ALLOW_SUPERUSER=1 composer install --no-dev --optimize-autoloader --no-interaction",
        cwd=app_path,
    )

    if app_key_is_set(env_path):
        log_installer("APP_KEY already set. Keeping it.", "info", ctx.logger)
    else:
        ctx.run_step(
            "backend.key_generate",
            f"{config.PHP_BIN_PATH} artisan key:generate --force",
            cwd=app_path,
        )

    ctx.run_step(
        "backend.migrate", f"{config.PHP_BIN_PATH} artisan migrate --force", cwd=app_path
    )
    ctx.run_step(
        "backend.seed", f"{config.PHP_BIN_PATH} artisan db:seed --force", cwd=app_path
    )


def build_frontend(ctx: StageContext) -> None:
    app_path = ctx.settings.app_path
    ctx.run_step("frontend.dependencies", "npm ci", cwd=app_path)
    # esbuild ships per-arch binaries that can lose their exec bit.
    ctx.run_step(
        "frontend.esbuild_permissions",
        f"find {shlex.quote(app_path + '/node_modules')} -path '*/@esbuild/*/bin/esbuild' "
        "-type f -exec chmod +x {} +",
    )
    ctx.run_step("frontend.build", "npm run build", cwd=app_path)
    owner = f"{ctx.web_user}:{ctx.web_user}"
    ctx.run_step(
        "frontend.ownership",
        f"chown -R {owner} {shlex.quote(app_path + '/public/build')}",
    )
