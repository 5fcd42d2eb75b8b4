"""
Wire models for the allocate/release boundary.

These mirror the parts of a Kubernetes ``ResourceClaim`` the driver reads,
and the per-claim result it hands back.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from netdra.config.logging_config import get_logger
from netdra.handler.errors import ConfigError, DeviceError, HandlerNotFoundError
from netdra.handler.types import (
    DeviceConfig,
    NetdevConfig,
    NetdevDeviceConfig,
    parse_device_config,
)

log = get_logger(__name__)


def default_device_config() -> DeviceConfig:
    """Config used when a claim carries no opaque parameters for this driver."""
    return NetdevDeviceConfig(netdev=NetdevConfig(kind="dummy", interface_name="eth1"))


def _payload_kind(parameters: Union[Dict[str, Any], str], tag: str) -> str:
    if isinstance(parameters, str):
        try:
            parameters = json.loads(parameters)
        except ValueError:
            return ""
    payload = parameters.get(tag) if isinstance(parameters, dict) else None
    return str(payload.get("kind", "")) if isinstance(payload, dict) else ""


def _invalid_config(claim_uid: str, parameters: Union[Dict[str, Any], str], error: ValidationError) -> DeviceError:
    for detail in error.errors():
        if detail["type"] == "union_tag_invalid":
            tag = str(detail.get("ctx", {}).get("tag", ""))
            return HandlerNotFoundError(tag, _payload_kind(parameters, tag))
    problems = "; ".join(
        f"{'.'.join(str(p) for p in detail['loc']) or 'parameters'}: {detail['msg']}"
        for detail in error.errors()
    )
    log.debug(f"Rejected device config for claim {claim_uid}: {problems}")
    return ConfigError(f"invalid device config: {problems}")


class OpaqueDeviceConfig(BaseModel):
    """Opaque, driver-specific parameters attached to a claim."""

    model_config = ConfigDict(populate_by_name=True)

    driver: str
    parameters: Union[Dict[str, Any], str, None] = None
    requests: List[str] = Field(default_factory=list)


class DeviceAllocationResult(BaseModel):
    """One device the scheduler allocated for a claim."""

    request: str = ""
    driver: str
    pool: str = ""
    device: str


class ResourceClaim(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    uid: str
    namespace: str = ""
    name: str = ""
    configs: List[OpaqueDeviceConfig] = Field(default_factory=list)
    results: List[DeviceAllocationResult] = Field(default_factory=list)

    def device_config(self, driver_name: str) -> DeviceConfig:
        """
        Return the device config from the first opaque entry for ``driver_name``.

        Entries for other drivers are ignored. A claim without an entry for
        this driver gets the default dummy interface config.

        Raises:
            HandlerNotFoundError: If the entry names a device type this
                driver does not know.
            ConfigError: If the entry is not valid JSON or a field is missing
                or out of range.
        """
        for opaque in self.configs:
            if opaque.driver != driver_name or opaque.parameters is None:
                continue
            try:
                return parse_device_config(opaque.parameters)
            except ValidationError as e:
                raise _invalid_config(self.uid, opaque.parameters, e) from e
        return default_device_config()

    def allocated_device(self, driver_name: str) -> str:
        """Name of the first device the scheduler allocated from this driver, or ""."""
        for result in self.results:
            if result.driver == driver_name:
                return result.device
        return ""


class NamespacedObject(BaseModel):
    """Identifies a claim on the release path."""

    uid: str
    namespace: str = ""
    name: str = ""


@dataclass
class PreparedDevice:
    pool_name: str
    device_name: str
    cdi_device_ids: List[str] = field(default_factory=list)


@dataclass
class ClaimPrepareResult:
    """Either the prepared devices of a claim or the error that stopped it."""

    devices: List[PreparedDevice] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None
