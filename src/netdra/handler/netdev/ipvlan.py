from netdra.config.logging_config import get_logger
from netdra.handler.errors import ConfigError
from netdra.handler.netdev.base import CreatedLinkHandler, netdev_config
from netdra.handler.types import DeviceConfig, PrepareRequest, PrepareResult

log = get_logger(__name__)

IPVLAN_MODES = ("l2", "l3")


class IpvlanHandler(CreatedLinkHandler):
    kinds = ("ipvlan",)
    prefix = "iv"

    def validate(self, config: DeviceConfig) -> None:
        cfg = netdev_config(config, self.kind)
        if not cfg.parent:
            raise ConfigError("parent interface is required for ipvlan")
        if cfg.mode and cfg.mode not in IPVLAN_MODES:
            raise ConfigError(f"unsupported ipvlan mode: {cfg.mode} (want l2 or l3)")

    def prepare(self, request: PrepareRequest) -> PrepareResult:
        cfg = netdev_config(request.config, self.kind)
        mode = cfg.mode or "l2"
        name = self.link_name(request.claim_uid)
        container_name = self.container_name(cfg)

        self.require_link(cfg.parent, "parent interface")
        self.create_link(name, "ipvlan", mtu=cfg.mtu, parent=cfg.parent, args=("mode", mode))
        log.info(f"Created ipvlan interface {name} (parent={cfg.parent}, mode={mode})")

        return self.build_result(
            request,
            device_name=name,
            host_interface=name,
            container_name=container_name,
            metadata={"createdInterface": name, "parent": cfg.parent},
        )
