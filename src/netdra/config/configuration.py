from dataclasses import dataclass
from typing import List


@dataclass
class Setting:
    env_var: str
    group: str
    description: str
    default: str | None = None
    enum: List[str] | None = None


_registry: List[Setting] = []


def register_setting(
    env_var: str,
    group: str,
    description: str,
    default: str | None = None,
    enum: List[str] | None = None,
) -> List[Setting]:
    """Register a new setting.

    Parameters
    ----------
    env_var: str
        The environment variable name (also the key in settings.yaml).
    group: str
        Group the setting belongs to.
    description: str
        Human readable description of the setting.
    default: str | None
        Value used when neither settings.yaml nor the environment provide one.
    enum: List[str] | None
        List of possible values for the setting.

    Returns
    -------
    List[Setting]
        The list of all registered settings.
    """
    setting = Setting(
        env_var=env_var,
        group=group,
        description=description,
        default=default,
        enum=enum,
    )
    _registry.append(setting)
    return list(_registry)


def get_settings_registry() -> List[Setting]:
    """Return the list of all registered settings."""
    return list(_registry)
