# tests/nexus_installer/test_config_loader.py
# -*- coding: utf-8 -*-
"""
Tests for the configuration record: loading, defaults, required-key
validation and persistence.
"""

import stat

import pytest

from common.command_utils import CommandOutcome, CommandRunner
from nexus_installer.config_loader import (
    load_install_settings,
    persist_install_settings,
    render_settings_file,
    validate_required_settings,
)
from nexus_installer.config_models import InstallSettings, missing_required_keys
from nexus_installer.errors import (
    EssentialStepError,
    MissingConfigurationError,
    PreconditionError,
)
from nexus_installer.profiles import resolve_profile


def _write(tmp_path, text):
    path = tmp_path / "install.env"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_reads_quoted_values_and_applies_defaults(tmp_path):
    path = _write(
        tmp_path,
        'INSTALL_PROFILE="web-only"\n'
        'DOMAIN="nexus.example.com"\n'
        'DB_PASSWORD="with space"\n'
        'INSTALL_REDIS="true"\n'
        'DB_PORT="3307"\n',
    )

    settings = load_install_settings(path)

    assert settings.install_profile == "web-only"
    assert settings.db_password == "with space"
    assert settings.install_redis is True
    assert settings.db_port == 3307
    assert settings.app_path == "/var/www/nexus"
    assert settings.app_url == "https://nexus.example.com"
    assert settings.nexus_api_url == "https://nexus.example.com/api/v1"


def test_explicit_urls_win_over_derived(tmp_path):
    path = _write(
        tmp_path,
        'DOMAIN="nexus.example.com"\nAPP_URL="http://10.0.0.5"\nNEXUS_API_URL="http://api.internal"\n',
    )

    settings = load_install_settings(path)

    assert settings.app_url == "http://10.0.0.5"
    assert settings.nexus_api_url == "http://api.internal"


def test_unknown_keys_are_kept(tmp_path):
    settings = load_install_settings(_write(tmp_path, 'FUTURE_OPTION="1"\n'))

    assert settings.as_file_values()["FUTURE_OPTION"] == "1"


def test_missing_file_is_a_precondition_error(tmp_path):
    with pytest.raises(PreconditionError, match="not found"):
        load_install_settings(tmp_path / "absent.env")


def test_unparseable_value_is_a_precondition_error(tmp_path):
    with pytest.raises(PreconditionError, match="Invalid configuration"):
        load_install_settings(_write(tmp_path, 'DB_PORT="not-a-port"\n'))


def test_required_keys_follow_enabled_stages(make_settings):
    settings = make_settings(pw_api_key="", pw_api_token="", db_password="")

    assert missing_required_keys(resolve_profile("db-only"), settings) == ["DB_PASSWORD"]
    assert missing_required_keys(resolve_profile("subs-only"), settings) == ["PW_API_TOKEN"]
    assert missing_required_keys(resolve_profile("full"), settings) == [
        "DB_PASSWORD",
        "PW_API_KEY",
        "PW_API_TOKEN",
    ]


def test_admin_keys_only_required_when_requested(make_settings):
    flags = resolve_profile("full")

    assert missing_required_keys(flags, make_settings(create_admin_user=False)) == []
    assert missing_required_keys(flags, make_settings(create_admin_user=True)) == [
        "ADMIN_NAME",
        "ADMIN_PASSWORD",
        "ADMIN_NATION_ID",
    ]


def test_validate_names_every_missing_key(make_settings):
    with pytest.raises(MissingConfigurationError) as excinfo:
        validate_required_settings(
            make_settings(domain="", admin_email=""), resolve_profile("web-only"), "install.env"
        )

    assert excinfo.value.missing_keys == ["DOMAIN", "ADMIN_EMAIL"]
    assert "install.env" in str(excinfo.value)


def test_rendered_file_loads_back_to_the_same_record(tmp_path, make_settings):
    settings = make_settings(install_redis=True, app_name='Nexus "AMS"')
    path = _write(tmp_path, render_settings_file(settings))

    assert load_install_settings(path) == settings


@pytest.mark.parametrize("secret", ["ab${HOME}cd", "$HOME", "p@ss${UNSET:-fallback}\\\"x"])
def test_dollar_values_load_back_unexpanded(tmp_path, make_settings, monkeypatch, secret):
    monkeypatch.setenv("HOME", "/root")
    settings = make_settings(db_password=secret, pw_api_key=secret)
    path = _write(tmp_path, render_settings_file(settings))

    loaded = load_install_settings(path)

    assert loaded.db_password == secret
    assert loaded.pw_api_key == secret
    assert loaded == settings


def test_persist_writes_through_runner_with_mode_600(tmp_path, make_settings):
    settings = make_settings()
    target = tmp_path / "install.env"

    class FileRunner(CommandRunner):
        def execute(self, command_line, cmd_input=None, cwd=None):
            self.history.append(command_line)
            if command_line.startswith("tee "):
                target.write_text(cmd_input, encoding="utf-8")
            elif command_line.startswith("chmod 600 "):
                target.chmod(0o600)
            return CommandOutcome(command_line, 0)

    persist_install_settings(settings, FileRunner(), target)

    assert stat.S_IMODE(target.stat().st_mode) == 0o600
    assert 'DB_PASSWORD="s3cret\'pw"' in target.read_text(encoding="utf-8")


def test_persist_in_dry_run_only_prints(tmp_path, make_settings):
    runner = CommandRunner(dry_run=True)
    target = tmp_path / "install.env"

    persist_install_settings(make_settings(), runner, target)

    assert not target.exists()
    assert runner.history[0].startswith("tee ")
    assert runner.history[1].startswith("chmod 600 ")


def test_persist_failure_is_essential(tmp_path, make_settings, make_runner):
    runner = make_runner(fail_on=("tee ",))

    with pytest.raises(EssentialStepError) as excinfo:
        persist_install_settings(make_settings(), runner, tmp_path / "install.env")

    assert excinfo.value.step_id == "config.persist"
    assert runner.count("chmod") == 0


def test_settings_are_frozen(make_settings):
    settings = make_settings()

    with pytest.raises(Exception):
        settings.domain = "other.example.com"

    assert isinstance(settings, InstallSettings)
