"""
Core types shared by every device handler.

A claim's opaque parameters are parsed into one of the ``DeviceConfig``
variants (discriminated by ``type``). Handlers turn a config into OS
resources plus a set of CDI container edits, and describe what they did in an
``AllocationInfo`` that is persisted next to the CDI spec so the work can be
reversed after a restart.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class DeviceType(str, Enum):
    """Broad category of device."""

    NETDEV = "netdev"
    RDMA = "rdma"
    COMBO = "combo"


# ============================================================================
# Claim configuration
# ============================================================================


class _ConfigModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class NetdevConfig(_ConfigModel):
    """Network device configuration."""

    kind: str = Field("", description="Handler kind, e.g. dummy, veth, macvlan")
    interface_name: str = Field("", alias="interfaceName", description="Interface name inside the container")
    mtu: int = Field(0, ge=0, description="MTU override (0 keeps the kernel default)")
    parent: str = Field("", description="Parent interface for macvlan/ipvlan/ipoib, or PF for SR-IOV")
    mode: str = Field("", description="Kind-specific mode, e.g. bridge, l3, connected")
    vf_index: Optional[int] = Field(None, alias="vfIndex", description="SR-IOV VF index on the parent PF")
    host_device: str = Field("", alias="hostDevice", description="Existing host interface (host-device kind)")
    pkey: int = Field(0, ge=0, le=0xFFFF, description="IPoIB partition key, e.g. 0x8001")


class RDMAConfig(_ConfigModel):
    """RDMA device configuration."""

    prefer_device: str = Field("", alias="preferDevice", description="uverbs device to use when unscheduled")


class ComboConfig(_ConfigModel):
    """Composite device configuration (e.g. RoCE = RDMA + netdev)."""

    rdma: RDMAConfig = Field(default_factory=RDMAConfig)
    netdev: NetdevConfig = Field(default_factory=NetdevConfig)


class NetdevDeviceConfig(_ConfigModel):
    type: Literal["netdev"] = "netdev"
    netdev: Optional[NetdevConfig] = None

    @property
    def kind(self) -> str:
        return self.netdev.kind if self.netdev is not None else ""


class RDMADeviceConfig(_ConfigModel):
    type: Literal["rdma"] = "rdma"
    rdma: RDMAConfig = Field(default_factory=RDMAConfig)

    @property
    def kind(self) -> str:
        return "uverbs"


class ComboDeviceConfig(_ConfigModel):
    type: Literal["combo"] = "combo"
    combo: Optional[ComboConfig] = None

    @property
    def kind(self) -> str:
        return "roce"


DeviceConfig = Annotated[
    Union[NetdevDeviceConfig, RDMADeviceConfig, ComboDeviceConfig],
    Field(discriminator="type"),
]

_device_config_adapter: TypeAdapter[DeviceConfig] = TypeAdapter(DeviceConfig)


def parse_device_config(data: Union[str, bytes, Dict[str, Any]]) -> DeviceConfig:
    """Parse opaque claim parameters into a DeviceConfig.

    Raises:
        pydantic.ValidationError: If the payload is not a valid config.
    """
    if isinstance(data, (str, bytes)):
        return _device_config_adapter.validate_json(data)
    return _device_config_adapter.validate_python(data)


# ============================================================================
# CDI container edits
# ============================================================================


class _CDIModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class DeviceNode(_CDIModel):
    path: str
    host_path: str = Field("", alias="hostPath")
    permissions: str = ""


class Mount(_CDIModel):
    host_path: str = Field(..., alias="hostPath")
    container_path: str = Field(..., alias="containerPath")
    options: List[str] = Field(default_factory=list)


class NetDevice(_CDIModel):
    host_interface_name: str = Field(..., alias="hostInterfaceName")
    name: str


class ContainerEdits(_CDIModel):
    """The part of a CDI device telling the runtime what to change in the container."""

    env: List[str] = Field(default_factory=list)
    device_nodes: List[DeviceNode] = Field(default_factory=list, alias="deviceNodes")
    mounts: List[Mount] = Field(default_factory=list)
    net_devices: List[NetDevice] = Field(default_factory=list, alias="netDevices")

    def merge(self, other: "ContainerEdits") -> "ContainerEdits":
        """Return a new edit set containing this one's edits followed by ``other``'s."""
        return ContainerEdits(
            env=[*self.env, *other.env],
            device_nodes=[*self.device_nodes, *other.device_nodes],
            mounts=[*self.mounts, *other.mounts],
            net_devices=[*self.net_devices, *other.net_devices],
        )


# ============================================================================
# Allocation state
# ============================================================================


class AllocationInfo(BaseModel):
    """Everything a handler needs to undo its prepare.

    Persisted verbatim as the allocation sidecar; must not depend on the
    original claim still being available.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: DeviceType
    kind: str
    claim_uid: str = Field("", alias="claimUID")
    device_name: str = Field("", alias="deviceName")
    metadata: Dict[str, str] = Field(default_factory=dict)


@dataclass
class PrepareRequest:
    claim_uid: str
    config: DeviceConfig
    namespace: str = ""
    claim_name: str = ""
    allocated_device: str = ""


@dataclass
class PrepareResult:
    pool_name: str
    device_name: str
    edits: ContainerEdits
    allocation: AllocationInfo


@dataclass
class UnprepareRequest:
    claim_uid: str
    allocation: AllocationInfo


class DeviceHandler(ABC):
    """Manages one device type and one or more kinds of it.

    Handlers do not guard against duplicate prepare calls for the same
    claim; the driver guarantees that through its persisted state.
    """

    device_type: ClassVar[DeviceType]
    kinds: ClassVar[Tuple[str, ...]]

    @abstractmethod
    def validate(self, config: DeviceConfig) -> None:
        """Reject missing or invalid kind-specific fields.

        Raises:
            ConfigError: If the configuration cannot be served.
        """

    @abstractmethod
    def prepare(self, request: PrepareRequest) -> PrepareResult:
        """Create or acquire the OS resource for a claim.

        Raises:
            ResourceError: If the resource could not be created. Anything
                created before the failure is removed first.
        """

    @abstractmethod
    def unprepare(self, request: UnprepareRequest) -> None:
        """Reverse prepare. A resource that is already gone is not an error."""
