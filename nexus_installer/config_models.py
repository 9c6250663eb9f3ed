# nexus_installer/config_models.py
# -*- coding: utf-8 -*-
"""
Pydantic model for the installer configuration record.

The record is a flat mapping from setting name to value, read from an
`install.env` file (`KEY="value"` lines). Field names are the lower-case
form of the file keys. The model is frozen once built; stages only read it.
Unknown keys in the file are kept (see `model_extra`) but not used.
"""

from typing import Dict, List, Tuple, Type

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from nexus_installer.profiles import StageFlags

# --- Default Static Values (can be overridden by the install.env file) ---
INSTALL_PROFILE_DEFAULT: str = "full"
APP_PATH_DEFAULT: str = "/var/www/nexus"
SUBS_PATH_DEFAULT: str = "/var/www/nexus-subs"
APP_REPO_URL_DEFAULT: str = "https://github.com/Yosodog/Nexus-AMS.git"
SUBS_REPO_URL_DEFAULT: str = "https://github.com/Yosodog/Nexus-AMS-Subs.git"
APP_NAME_DEFAULT: str = "Nexus AMS"
PHP_VERSION_DEFAULT: str = "8.4"
SWAP_SIZE_DEFAULT: str = "4G"
DB_HOST_DEFAULT: str = "127.0.0.1"
DB_PORT_DEFAULT: int = 3306
DB_DATABASE_DEFAULT: str = "nexus"
DB_USERNAME_DEFAULT: str = "nexus"
DB_USER_HOST_DEFAULT: str = "localhost"
REDIS_MAXMEMORY_DEFAULT: str = "256mb"
REDIS_MAXMEMORY_POLICY_DEFAULT: str = "allkeys-lru"
ADMIN_ROLE_ID_DEFAULT: str = "1"

# Keys whose values are masked in summaries and never logged.
SECRET_KEYS: Tuple[str, ...] = (
    "db_password",
    "pw_api_key",
    "pw_api_mutation_key",
    "nexus_api_token",
    "pw_api_token",
    "admin_password",
)


class InstallSettings(BaseSettings):
    """Installer configuration record."""

    model_config = SettingsConfigDict(
        extra="allow",
        case_sensitive=False,
        frozen=True,
        env_file_encoding="utf-8",
    )

    install_profile: str = Field(
        default=INSTALL_PROFILE_DEFAULT,
        description="Install profile: full, app-web-subs-remote-db, web-only, db-only, subs-only.",
    )
    domain: str = Field(default="", description="Public FQDN served by Nginx.")
    admin_email: str = Field(
        default="", description="Certbot registration and admin user e-mail."
    )
    app_path: str = Field(default=APP_PATH_DEFAULT, description="Nexus AMS checkout path.")
    subs_path: str = Field(default=SUBS_PATH_DEFAULT, description="Nexus AMS Subs checkout path.")
    app_repo_url: str = Field(default=APP_REPO_URL_DEFAULT, description="Nexus AMS git URL.")
    subs_repo_url: str = Field(default=SUBS_REPO_URL_DEFAULT, description="Subs git URL.")
    app_name: str = Field(default=APP_NAME_DEFAULT, description="Laravel APP_NAME.")
    app_url: str = Field(
        default="",
        validate_default=True,
        description="Laravel APP_URL. Defaults to https://<domain>.",
    )
    php_version: str = Field(default=PHP_VERSION_DEFAULT, description="PHP major.minor.")
    swap_size: str = Field(default=SWAP_SIZE_DEFAULT, description="Swap file size (fallocate syntax).")

    db_host: str = Field(default=DB_HOST_DEFAULT, description="Database host used by the app.")
    db_port: int = Field(default=DB_PORT_DEFAULT, description="Database port used by the app.")
    db_database: str = Field(default=DB_DATABASE_DEFAULT, description="Database name.")
    db_username: str = Field(default=DB_USERNAME_DEFAULT, description="Database user.")
    db_password: str = Field(default="", description="Database password.")
    db_user_host: str = Field(
        default=DB_USER_HOST_DEFAULT,
        description="Host part of the database account ('%' for remote app servers).",
    )

    pw_api_key: str = Field(default="", description="Politics & War API key.")
    pw_api_mutation_key: str = Field(default="", description="Politics & War mutation key.")
    nexus_api_token: str = Field(default="", description="Token shared by the app and subs.")
    pw_alliance_id: str = Field(default="", description="Alliance id.")
    pw_api_token: str = Field(default="", description="Subs Politics & War API token.")
    nexus_api_url: str = Field(
        default="",
        validate_default=True,
        description="Nexus API base URL used by subs. Defaults to <app_url>/api/v1.",
    )
    enable_snapshots: bool = Field(default=False, description="Subs snapshot feature.")

    install_redis: bool = Field(default=False, description="Install Redis as cache/queue store.")
    redis_maxmemory: str = Field(default=REDIS_MAXMEMORY_DEFAULT, description="Redis maxmemory.")
    redis_maxmemory_policy: str = Field(
        default=REDIS_MAXMEMORY_POLICY_DEFAULT, description="Redis eviction policy."
    )

    create_admin_user: bool = Field(default=False, description="Seed an initial admin user.")
    admin_name: str = Field(default="", description="Admin display name.")
    admin_password: str = Field(default="", description="Admin password.")
    admin_nation_id: str = Field(default="", description="Admin nation id.")
    admin_role_id: str = Field(default=ADMIN_ROLE_ID_DEFAULT, description="Role id attached to the admin.")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        # The run is determined by the install.env file alone.
        return init_settings, dotenv_settings

    @field_validator("app_url")
    @classmethod
    def _default_app_url(cls, value: str, info: ValidationInfo) -> str:
        if value:
            return value
        domain = info.data.get("domain") or ""
        return f"https://{domain}" if domain else ""

    @field_validator("nexus_api_url")
    @classmethod
    def _default_nexus_api_url(cls, value: str, info: ValidationInfo) -> str:
        if value:
            return value
        app_url = info.data.get("app_url") or ""
        return f"{app_url.rstrip('/')}/api/v1" if app_url else ""

    @classmethod
    def schema_keys(cls) -> List[str]:
        """Field names in declaration order (the order of the file)."""
        return list(cls.model_fields)

    def as_file_values(self) -> Dict[str, str]:
        """
        Flatten the record to file keys and string values: schema keys in
        order, then preserved unknown keys.
        """
        values: Dict[str, str] = {}
        for name in self.schema_keys():
            value = getattr(self, name)
            if isinstance(value, bool):
                value = "true" if value else "false"
            values[name.upper()] = str(value)
        for name, value in (self.model_extra or {}).items():
            values[name.upper()] = str(value)
        return values


# Keys each enabled stage flag consumes and that have no usable default.
REQUIRED_KEYS_BY_FLAG: Dict[str, Tuple[str, ...]] = {
    "database": ("db_database", "db_username", "db_password"),
    "backend": (
        "domain",
        "db_host",
        "db_database",
        "db_username",
        "db_password",
        "pw_api_key",
        "pw_api_mutation_key",
        "nexus_api_token",
        "pw_alliance_id",
    ),
    "subs": ("pw_api_token", "nexus_api_url", "nexus_api_token"),
    "nginx": ("domain", "admin_email"),
    "admin_user": (
        "admin_name",
        "admin_email",
        "admin_password",
        "admin_nation_id",
        "admin_role_id",
    ),
}


def required_keys(flags: StageFlags, settings: InstallSettings) -> List[str]:
    """
    Keys that must be non-empty for the enabled stages, in first-use order.
    Admin keys only count when CREATE_ADMIN_USER is set.
    """
    keys: List[str] = []
    for flag_name, flag_keys in REQUIRED_KEYS_BY_FLAG.items():
        if not getattr(flags, flag_name):
            continue
        if flag_name == "admin_user" and not settings.create_admin_user:
            continue
        for key in flag_keys:
            if key not in keys:
                keys.append(key)
    return keys


def missing_required_keys(
    flags: StageFlags, settings: InstallSettings
) -> List[str]:
    return [
        key.upper()
        for key in required_keys(flags, settings)
        if str(getattr(settings, key, "") or "").strip() == ""
    ]
