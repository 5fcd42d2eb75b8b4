from netdra.config.logging_config import get_logger
from netdra.handler.errors import ResourceError
from netdra.handler.netdev.base import NetdevHandler, netdev_config, short_uid
from netdra.handler.types import PrepareRequest, PrepareResult, UnprepareRequest

log = get_logger(__name__)


class VethHandler(NetdevHandler):
    """
    Creates a veth pair. The ``vc`` end moves into the container, the ``vh``
    end stays on the host. Deleting the host end removes both.
    """

    kinds = ("veth",)

    def prepare(self, request: PrepareRequest) -> PrepareResult:
        cfg = netdev_config(request.config, self.kind)
        uid8 = short_uid(request.claim_uid)
        host_end = f"vh{uid8}"
        container_end = f"vc{uid8}"
        container_name = self.container_name(cfg)

        self.ops.link_add(host_end, "veth", args=("peer", "name", container_end))
        try:
            for end in (host_end, container_end):
                if cfg.mtu > 0:
                    self.ops.link_set_mtu(end, cfg.mtu)
                self.ops.link_set_up(end)
        except ResourceError:
            self.discard_link(host_end)
            raise
        log.info(f"Created veth pair {host_end}/{container_end}")

        return self.build_result(
            request,
            device_name=container_end,
            host_interface=container_end,
            container_name=container_name,
            metadata={"hostEnd": host_end, "containerEnd": container_end},
        )

    def unprepare(self, request: UnprepareRequest) -> None:
        self.delete_link(request.allocation.metadata.get("hostEnd", ""))
