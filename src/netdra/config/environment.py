"""
Environment Configuration Management Module

This module provides centralized configuration for the driver through the
Environment class. Values are looked up in this order:

- Settings file (settings.yaml)
- Environment variables (optionally seeded from .env files)
- Defaults declared with register_setting in netdra.config.settings

The Environment class only exposes class methods; the loaded settings are
cached for the lifetime of the process and can be dropped with
``Environment.reset()`` (tests use this after changing the settings file).
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

from netdra.config.settings import (
    NOT_GIVEN,
    SETTINGS_FILE,
    default_env,
    get_system_file_path,
    get_value,
    load_settings,
)


def load_dotenv_files():
    """Load environment variables from .env files in the working directory."""
    from dotenv import load_dotenv

    env_name = os.environ.get("ENV", "production")
    env_files = [
        Path.cwd() / ".env",
        Path.cwd() / f".env.{env_name}",
    ]

    for env_file in env_files:
        if env_file.exists():
            load_dotenv(env_file, override=False)


class Environment(object):
    """
    A class that manages settings and environment variables and provides default values
    and type conversions for the driver.
    """

    settings: Optional[Dict[str, Any]] = None

    @classmethod
    def load_settings(cls):
        load_dotenv_files()
        cls.settings = load_settings()

    @classmethod
    def get_settings(cls) -> Dict[str, Any]:
        if cls.settings is None:
            cls.load_settings()
        assert cls.settings is not None
        return cls.settings

    @classmethod
    def reset(cls):
        cls.settings = None

    @classmethod
    def get(cls, key: str, default: Any = NOT_GIVEN):
        return get_value(key, cls.get_settings(), default_env(), default)

    @classmethod
    def get_environment(cls) -> Dict[str, Any]:
        """Return the effective value of every registered setting."""
        return {key: cls.get(key, None) for key in default_env()}

    @classmethod
    def has_settings(cls):
        return get_system_file_path(SETTINGS_FILE).exists()

    @classmethod
    def get_driver_name(cls) -> str:
        """
        The driver name, e.g. "dra.example.com".
        """
        return str(cls.get("DRIVER_NAME"))

    @classmethod
    def get_node_name(cls) -> Optional[str]:
        return cls.get("NODE_NAME", None)

    @classmethod
    def get_cdi_dir(cls) -> Path:
        """
        Directory for CDI specs and allocation state sidecars.
        """
        return Path(cls.get("CDI_DIR"))

    @classmethod
    def get_host_netns_path(cls) -> str:
        return str(cls.get("HOST_NETNS_PATH"))

    @classmethod
    def get_ib_dev_dir(cls) -> Path:
        return Path(cls.get("IB_DEV_DIR"))

    @classmethod
    def get_sysfs_root(cls) -> Path:
        return Path(cls.get("SYSFS_ROOT"))

    @classmethod
    def get_log_level(cls) -> str:
        """Return desired log level string.

        Priority:
        1) LOG_LEVEL in settings.yaml, then the LOG_LEVEL env
        2) If DEBUG env is truthy, return "DEBUG"
        3) NETDRA_LOG_LEVEL env (default "INFO")
        """
        level = get_value("LOG_LEVEL", cls.get_settings(), {}, None)
        if level:
            return str(level).upper()
        debug_env = os.getenv("DEBUG")
        if debug_env and debug_env.lower() not in ("0", "false", "no", "off", ""):
            return "DEBUG"
        return os.getenv("NETDRA_LOG_LEVEL", "INFO").upper()
