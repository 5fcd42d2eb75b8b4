"""Utility functions for reading the driver's configuration file."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict

import yaml

from netdra.config.configuration import get_settings_registry, register_setting

SETTINGS_FILE = "settings.yaml"
MISSING_MESSAGE = "Missing required setting: {}"
NOT_GIVEN = object()

register_setting(
    env_var="DRIVER_NAME",
    group="Driver",
    description=(
        "Name of the DRA driver. Opaque claim configs are matched against it and it "
        "prefixes every CDI device id and state file."
    ),
    default="dra.example.com",
)
register_setting(
    env_var="NODE_NAME",
    group="Driver",
    description="Name of the node this driver serves (usually injected via the downward API).",
)
register_setting(
    env_var="CDI_DIR",
    group="Storage",
    description=(
        "Directory holding the generated CDI specs and the allocation sidecar files. "
        "The container runtime reads CDI specs from here."
    ),
    default="/etc/cdi",
)
register_setting(
    env_var="HOST_NETNS_PATH",
    group="Namespaces",
    description="Network namespace RDMA devices are returned to when a sandbox goes away.",
    default="/proc/1/ns/net",
)
register_setting(
    env_var="IB_DEV_DIR",
    group="Devices",
    description="Directory containing the InfiniBand character devices (uverbsN, umadN, rdma_cm).",
    default="/dev/infiniband",
)
register_setting(
    env_var="SYSFS_ROOT",
    group="Devices",
    description="Mount point of sysfs, used to resolve IB devices and SR-IOV virtual functions.",
    default="/sys",
)
register_setting(
    env_var="LOG_LEVEL",
    group="Logging",
    description="Log level for the driver process.",
    default="INFO",
    enum=["DEBUG", "INFO", "WARNING", "ERROR"],
)


def default_env() -> Dict[str, Any]:
    """Return the defaults declared by the registered settings."""
    return {s.env_var: s.default for s in get_settings_registry()}


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------


def get_system_file_path(filename: str) -> Path:
    """Return the path to a configuration file.

    ``NETDRA_CONFIG_DIR`` overrides the default ``~/.config/netdra``.
    """
    config_dir = os.getenv("NETDRA_CONFIG_DIR")
    if config_dir:
        return Path(config_dir) / filename
    return Path.home() / ".config" / "netdra" / filename


# ---------------------------------------------------------------------------
# Settings helpers
# ---------------------------------------------------------------------------


def load_settings() -> Dict[str, Any]:
    """Load settings from the YAML settings file, if present."""
    settings_file = get_system_file_path(SETTINGS_FILE)

    settings: Dict[str, Any] = {}
    if settings_file.exists():
        with open(settings_file, "r") as f:
            settings = yaml.safe_load(f) or {}

    return settings


def get_value(
    key: str,
    settings: Dict[str, Any],
    defaults: Dict[str, Any],
    default: Any = NOT_GIVEN,
) -> Any:
    """Retrieve a configuration value from settings, the environment, or defaults."""
    value = settings.get(key)
    if value is None or str(value) == "":
        value = os.environ.get(key)

    if value is None:
        value = defaults.get(key)

    if value is None:
        value = default

    if value is not NOT_GIVEN:
        return value
    raise KeyError(MISSING_MESSAGE.format(key))
