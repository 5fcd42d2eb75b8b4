from netdra.config.logging_config import get_logger
from netdra.handler.errors import ConfigError
from netdra.handler.netdev.base import CreatedLinkHandler, netdev_config
from netdra.handler.types import DeviceConfig, PrepareRequest, PrepareResult

log = get_logger(__name__)

MACVLAN_MODES = ("bridge", "vepa", "private")


class MacvlanHandler(CreatedLinkHandler):
    """Creates a macvlan sub-interface on ``parent`` (mode bridge, vepa or private)."""

    kinds = ("macvlan",)
    prefix = "mv"

    def validate(self, config: DeviceConfig) -> None:
        cfg = netdev_config(config, self.kind)
        if not cfg.parent:
            raise ConfigError("parent interface is required for macvlan")
        if cfg.mode and cfg.mode not in MACVLAN_MODES:
            raise ConfigError(f"unsupported macvlan mode: {cfg.mode} (want one of {', '.join(MACVLAN_MODES)})")

    def prepare(self, request: PrepareRequest) -> PrepareResult:
        cfg = netdev_config(request.config, self.kind)
        mode = cfg.mode or "bridge"
        name = self.link_name(request.claim_uid)
        container_name = self.container_name(cfg)

        self.require_link(cfg.parent, "parent interface")
        self.create_link(name, "macvlan", mtu=cfg.mtu, parent=cfg.parent, args=("mode", mode))
        log.info(f"Created macvlan interface {name} (parent={cfg.parent}, mode={mode})")

        return self.build_result(
            request,
            device_name=name,
            host_interface=name,
            container_name=container_name,
            metadata={"createdInterface": name, "parent": cfg.parent},
        )
