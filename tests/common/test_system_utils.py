# tests/common/test_system_utils.py
# -*- coding: utf-8 -*-
"""
Tests for OS detection, web user detection and the host-state probes.
"""

import logging
from unittest.mock import MagicMock

import pytest

from common.system_utils import (
    detect_os,
    detect_web_user,
    file_has_line,
    fstab_has_entry,
    is_swap_active,
    listening_ports,
    parse_os_release,
    repository_marker_present,
    require_root,
    size_to_mib,
)
from nexus_installer.errors import PreconditionError, UnsupportedOSError


@pytest.fixture
def mock_logger():
    return MagicMock(spec=logging.Logger)


def _os_release(tmp_path, text):
    path = tmp_path / "os-release"
    path.write_text(text, encoding="utf-8")
    return path


@pytest.mark.parametrize(
    "text, family, manager",
    [
        ('ID=ubuntu\nID_LIKE=debian\nVERSION_ID="24.04"\n', "debian", "apt-get"),
        ("ID=debian\nVERSION_ID=12\n", "debian", "apt-get"),
        ('ID="rocky"\nID_LIKE="rhel centos fedora"\n', "redhat", "dnf"),
        ("ID=fedora\n", "redhat", "dnf"),
        ("ID=neon\nID_LIKE=\"ubuntu debian\"\n", "debian", "apt-get"),
    ],
)
def test_detect_os_families(tmp_path, mock_logger, text, family, manager):
    info = detect_os(_os_release(tmp_path, text), current_logger=mock_logger)

    assert info.package_family == family
    assert info.package_manager == manager


def test_detect_os_unsupported(tmp_path, mock_logger):
    with pytest.raises(UnsupportedOSError):
        detect_os(_os_release(tmp_path, "ID=arch\n"), current_logger=mock_logger)


def test_detect_os_missing_file(tmp_path, mock_logger):
    with pytest.raises(PreconditionError, match="not found"):
        detect_os(tmp_path / "missing", current_logger=mock_logger)


def test_parse_os_release_strips_quotes_and_comments():
    values = parse_os_release('# comment\nPRETTY_NAME="Ubuntu 24.04"\nID=ubuntu\n\n')

    assert values == {"PRETTY_NAME": "Ubuntu 24.04", "ID": "ubuntu"}


def test_detect_web_user_returns_first_existing(mocker, mock_logger):
    mocker.patch(
        "common.system_utils.user_exists", side_effect=lambda name: name == "nginx"
    )

    assert detect_web_user(("www-data", "nginx", "apache"), current_logger=mock_logger) == "nginx"
    mock_logger.warning.assert_not_called()


def test_detect_web_user_falls_back_with_warning(mocker, mock_logger):
    mocker.patch("common.system_utils.user_exists", return_value=False)

    assert detect_web_user(("nginx",), default="www-data", current_logger=mock_logger) == "www-data"
    mock_logger.warning.assert_called_once()


def test_require_root_rejects_non_root(mocker):
    mocker.patch("common.system_utils.os.geteuid", return_value=1000)

    with pytest.raises(PreconditionError, match="root"):
        require_root()


def test_is_swap_active(tmp_path):
    proc_swaps = tmp_path / "swaps"
    proc_swaps.write_text(
        "Filename\tType\tSize\tUsed\tPriority\n/swapfile\tfile\t4194300\t0\t-2\n",
        encoding="utf-8",
    )

    assert is_swap_active("/swapfile", proc_swaps)
    assert not is_swap_active("/swapfile2", proc_swaps)
    assert not is_swap_active("/swapfile", tmp_path / "absent")


def test_fstab_has_entry_ignores_comments(tmp_path):
    fstab = tmp_path / "fstab"
    fstab.write_text("# /swapfile none swap sw 0 0\nUUID=abc / ext4 defaults 0 1\n", encoding="utf-8")

    assert not fstab_has_entry("/swapfile", fstab)
    fstab.write_text("/swapfile none swap sw 0 0\n", encoding="utf-8")
    assert fstab_has_entry("/swapfile", fstab)


def test_file_has_line_is_exact(tmp_path):
    crontab = tmp_path / "crontab"
    crontab.write_text("* * * * * root run-thing  \n", encoding="utf-8")

    assert file_has_line(crontab, "* * * * * root run-thing")
    assert not file_has_line(crontab, "* * * * * root run")


def test_repository_marker_present(tmp_path):
    sources = tmp_path / "sources.list.d"
    assert not repository_marker_present(sources, "nodesource")

    sources.mkdir()
    (sources / "ondrej-ubuntu-php-noble.sources").touch()
    assert repository_marker_present(sources, "ondrej-ubuntu-php")
    assert not repository_marker_present(sources, "nodesource")


def test_listening_ports_reads_listen_state_only(tmp_path):
    tcp = tmp_path / "tcp"
    tcp.write_text(
        "  sl  local_address rem_address   st\n"
        "   0: 00000000:0050 00000000:0000 0A\n"
        "   1: 0100007F:0CEA 00000000:0000 0A\n"
        "   2: 0100007F:01BB 0100007F:D431 01\n",
        encoding="utf-8",
    )

    assert listening_ports(tcp, tmp_path / "tcp6") == {80, 3306}


@pytest.mark.parametrize(
    "size, mib", [("4G", 4096), ("512M", 512), ("1g", 1024), ("2048MB", 2048)]
)
def test_size_to_mib(size, mib):
    assert size_to_mib(size) == mib
