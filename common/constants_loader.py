# common/constants_loader.py
# -*- coding: utf-8 -*-
"""
Constants loader for the installer.

Provides utilities for loading and accessing the per-OS-family package,
service and path table stored in the packages.yaml file.
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

# Constants file path
CONSTANTS_FILE = Path(__file__).parent / "packages.yaml"

# Cache for loaded constants
_constants_cache: Optional[Dict[str, Any]] = None

module_logger = logging.getLogger(__name__)


def get_constants() -> Dict[str, Any]:
    """
    Load constants from the YAML file.

    Returns:
        Dict[str, Any]: A dictionary containing all constants from the YAML file.

    Raises:
        FileNotFoundError: If the constants file doesn't exist.
        yaml.YAMLError: If there's an error parsing the YAML file.
    """
    global _constants_cache

    if _constants_cache is not None:
        return _constants_cache

    if not CONSTANTS_FILE.exists():
        raise FileNotFoundError(
            f"Constants file not found at {CONSTANTS_FILE}"
        )

    try:
        with open(CONSTANTS_FILE, "r", encoding="utf-8") as f:
            _constants_cache = yaml.safe_load(f)

        if _constants_cache is None:
            # If the file is empty or contains only comments
            _constants_cache = {}

        module_logger.debug(f"Loaded constants from {CONSTANTS_FILE}")
        return _constants_cache
    except yaml.YAMLError as e:
        module_logger.error(
            f"Error parsing constants file {CONSTANTS_FILE}: {e}"
        )
        raise


def get_constant(path: str, default: Any = None) -> Any:
    """
    Get a constant value by its path.

    Args:
        path: Dot-separated path to the constant (e.g., "families.debian.services")
        default: Default value to return if the constant is not found

    Returns:
        The constant value or the default if not found
    """
    constants = get_constants()
    current: Any = constants

    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            module_logger.debug(
                f"Constant '{path}' not found, using default: {default}"
            )
            return default
        current = current[part]

    return current


def _deep_update(
    source: Dict[str, Any], overrides: Dict[str, Any]
) -> Dict[str, Any]:
    """Recursively merge `overrides` into `source`; lists are replaced."""
    for key, value in overrides.items():
        if (
            isinstance(value, dict)
            and key in source
            and isinstance(source[key], dict)
        ):
            source[key] = _deep_update(source[key], value)
        else:
            source[key] = value
    return source


def get_family_constants(
    family: str, os_id: Optional[str] = None
) -> Dict[str, Any]:
    """
    Return the constants block for a package family, with the overrides for
    the given distribution id merged in.

    Raises:
        KeyError: If the family is not defined.
    """
    family_block = get_constant(f"families.{family}")
    if not isinstance(family_block, dict):
        raise KeyError(f"Package family '{family}' is not defined")

    merged = copy.deepcopy(family_block)
    overrides = merged.pop("overrides", None) or {}
    if os_id and os_id in overrides:
        merged = _deep_update(merged, overrides[os_id])
    return merged


def format_value(value: Any, **fmt: str) -> Any:
    """Substitute placeholders such as {php_version} in strings and lists."""
    if isinstance(value, str):
        return value.format(**fmt)
    if isinstance(value, list):
        return [format_value(item, **fmt) for item in value]
    return value


def get_package_list(
    family_constants: Dict[str, Any], group: str, **fmt: str
) -> List[str]:
    """Return the package names of a group, formatted with `fmt`."""
    packages = family_constants.get("packages", {}).get(group)
    if packages is None:
        raise KeyError(f"Package group '{group}' is not defined")
    return format_value(list(packages), **fmt)
