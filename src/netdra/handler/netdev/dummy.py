from netdra.config.logging_config import get_logger
from netdra.handler.netdev.base import CreatedLinkHandler, netdev_config
from netdra.handler.types import PrepareRequest, PrepareResult

log = get_logger(__name__)


class DummyHandler(CreatedLinkHandler):
    """Creates a dummy interface. Mostly useful for testing the plumbing end to end."""

    kinds = ("dummy",)
    prefix = "dm"

    def prepare(self, request: PrepareRequest) -> PrepareResult:
        cfg = netdev_config(request.config, self.kind)
        name = self.link_name(request.claim_uid)
        container_name = self.container_name(cfg)

        self.create_link(name, "dummy", mtu=cfg.mtu)
        log.info(f"Created dummy interface {name} for claim {request.claim_uid}")

        return self.build_result(
            request,
            device_name=name,
            host_interface=name,
            container_name=container_name,
            metadata={"createdInterface": name},
        )
