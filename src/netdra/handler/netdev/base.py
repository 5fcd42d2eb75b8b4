"""Shared plumbing for the network interface handlers."""

from typing import ClassVar, Dict, Sequence

from netdra.config.logging_config import get_logger
from netdra.handler.errors import ConfigError, ResourceError
from netdra.handler.types import (
    AllocationInfo,
    ContainerEdits,
    DeviceConfig,
    DeviceHandler,
    DeviceType,
    NetDevice,
    NetdevConfig,
    NetdevDeviceConfig,
    PrepareRequest,
    PrepareResult,
    UnprepareRequest,
)
from netdra.system.iproute import LinkOps

log = get_logger(__name__)

DEFAULT_POOL = "default"


def netdev_config(config: DeviceConfig, kind: str) -> NetdevConfig:
    """Return the netdev payload of ``config`` or raise ConfigError."""
    if not isinstance(config, NetdevDeviceConfig) or config.netdev is None:
        raise ConfigError(f"netdev config is required for {kind}")
    return config.netdev


def short_uid(claim_uid: str) -> str:
    """First eight characters of a claim UID, used in interface names."""
    return claim_uid[:8]


class NetdevHandler(DeviceHandler):
    """Base class for handlers that hand a network interface to the container."""

    device_type = DeviceType.NETDEV
    default_container_name: ClassVar[str] = "eth1"

    def __init__(self, ops: LinkOps):
        self.ops = ops

    @property
    def kind(self) -> str:
        return self.kinds[0]

    def validate(self, config: DeviceConfig) -> None:
        netdev_config(config, self.kind)

    def container_name(self, cfg: NetdevConfig) -> str:
        return cfg.interface_name or self.default_container_name

    def build_result(
        self,
        request: PrepareRequest,
        device_name: str,
        host_interface: str,
        container_name: str,
        metadata: Dict[str, str],
    ) -> PrepareResult:
        return PrepareResult(
            pool_name=DEFAULT_POOL,
            device_name=device_name,
            edits=ContainerEdits(
                net_devices=[NetDevice(host_interface_name=host_interface, name=container_name)]
            ),
            allocation=AllocationInfo(
                type=DeviceType.NETDEV,
                kind=self.kind,
                claim_uid=request.claim_uid,
                device_name=device_name,
                metadata={**metadata, "containerName": container_name},
            ),
        )

    def require_link(self, name: str, what: str = "interface") -> None:
        if not self.ops.link_exists(name):
            raise ResourceError(f"{what} {name} not found")

    def delete_link(self, name: str) -> None:
        """Delete ``name`` if it exists. A missing link is not an error."""
        if not name:
            return
        if not self.ops.link_exists(name):
            log.debug(f"{self.kind} interface {name} already removed")
            return
        self.ops.link_delete(name)
        log.info(f"Deleted {self.kind} interface {name}")

    def discard_link(self, name: str) -> None:
        """Delete a link created earlier in a failing prepare; errors are only logged."""
        try:
            self.ops.link_delete(name)
        except ResourceError as e:
            log.warning(f"Failed to remove {self.kind} interface {name} after error: {e}")


class CreatedLinkHandler(NetdevHandler):
    """
    Handlers that create a fresh link named ``<prefix><uid8>`` during prepare
    and delete it again on unprepare.
    """

    prefix: ClassVar[str]

    def link_name(self, claim_uid: str) -> str:
        return f"{self.prefix}{short_uid(claim_uid)}"

    def create_link(
        self,
        name: str,
        link_type: str,
        mtu: int = 0,
        parent: str = "",
        args: Sequence[str] = (),
    ) -> None:
        """Create ``name``, apply the MTU and bring it up, removing it again on failure."""
        self.ops.link_add(name, link_type, parent=parent, args=args)
        try:
            if mtu > 0:
                self.ops.link_set_mtu(name, mtu)
            self.ops.link_set_up(name)
        except ResourceError:
            self.discard_link(name)
            raise

    def unprepare(self, request: UnprepareRequest) -> None:
        self.delete_link(request.allocation.metadata.get("createdInterface", ""))
