from netdra.config.logging_config import get_logger
from netdra.handler.errors import ConfigError
from netdra.handler.netdev.base import NetdevHandler, netdev_config
from netdra.handler.types import (
    DeviceConfig,
    NetdevConfig,
    PrepareRequest,
    PrepareResult,
    UnprepareRequest,
)

log = get_logger(__name__)


class HostDeviceHandler(NetdevHandler):
    """
    Moves an existing host interface into the container. The interface is
    owned by the host, so unprepare leaves it alone; the runtime hands it
    back when the container's netns goes away.
    """

    kinds = ("host-device",)

    def validate(self, config: DeviceConfig) -> None:
        cfg = netdev_config(config, self.kind)
        if not cfg.host_device:
            raise ConfigError("hostDevice (the name of the existing host interface) is required for host-device")

    def container_name(self, cfg: NetdevConfig) -> str:
        return cfg.interface_name or cfg.host_device

    def prepare(self, request: PrepareRequest) -> PrepareResult:
        cfg = netdev_config(request.config, self.kind)
        host_if = cfg.host_device
        if not host_if:
            raise ConfigError("hostDevice is required for host-device")
        container_name = self.container_name(cfg)

        self.require_link(host_if, "host interface")
        if cfg.mtu > 0:
            self.ops.link_set_mtu(host_if, cfg.mtu)
        log.info(f"Prepared host-device {host_if} for claim {request.claim_uid} (container name {container_name})")

        return self.build_result(
            request,
            device_name=host_if,
            host_interface=host_if,
            container_name=container_name,
            metadata={"hostDevice": host_if},
        )

    def unprepare(self, request: UnprepareRequest) -> None:
        host_if = request.allocation.metadata.get("hostDevice", "")
        log.info(f"Released host-device {host_if} for claim {request.claim_uid} (externally owned, not deleted)")
