from netdra.config.logging_config import get_logger
from netdra.handler.errors import ConfigError
from netdra.handler.netdev.base import CreatedLinkHandler, netdev_config
from netdra.handler.types import DeviceConfig, PrepareRequest, PrepareResult

log = get_logger(__name__)

IPOIB_MODES = ("datagram", "connected")
FULL_MEMBERSHIP = 0x8000


class IpoibHandler(CreatedLinkHandler):
    """
    Creates an IPoIB child interface on an InfiniBand parent for one
    partition key. The full-membership bit is always set on the pkey.
    """

    kinds = ("ipoib",)
    prefix = "ib"
    default_container_name = "ib1"

    def validate(self, config: DeviceConfig) -> None:
        cfg = netdev_config(config, self.kind)
        if not cfg.parent:
            raise ConfigError("parent interface is required for ipoib")
        if cfg.pkey == 0:
            raise ConfigError("pkey is required for ipoib")
        if cfg.mode and cfg.mode not in IPOIB_MODES:
            raise ConfigError(f"unsupported ipoib mode: {cfg.mode} (want datagram or connected)")

    def prepare(self, request: PrepareRequest) -> PrepareResult:
        cfg = netdev_config(request.config, self.kind)
        pkey = f"0x{cfg.pkey | FULL_MEMBERSHIP:04x}"
        mode = cfg.mode or "datagram"
        name = self.link_name(request.claim_uid)
        container_name = self.container_name(cfg)

        self.require_link(cfg.parent, "parent interface")
        self.create_link(
            name,
            "ipoib",
            mtu=cfg.mtu,
            parent=cfg.parent,
            args=("pkey", pkey, "mode", mode),
        )
        log.info(f"Created ipoib interface {name} (parent={cfg.parent}, pkey={pkey}, mode={mode})")

        return self.build_result(
            request,
            device_name=name,
            host_interface=name,
            container_name=container_name,
            metadata={"createdInterface": name, "parent": cfg.parent, "pkey": pkey},
        )
