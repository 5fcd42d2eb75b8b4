import re
from pathlib import Path
from typing import Optional

from netdra.config.logging_config import get_logger
from netdra.handler.errors import ConfigError, ResourceError
from netdra.handler.netdev.base import NetdevHandler, netdev_config
from netdra.handler.types import PrepareRequest, PrepareResult, UnprepareRequest
from netdra.system.iproute import LinkOps

log = get_logger(__name__)

_VIRTFN_RE = re.compile(r"^virtfn(\d+)$")


class SriovVfHandler(NetdevHandler):
    """
    Hands an SR-IOV virtual function to the container.

    The VF is the device the scheduler allocated, or else one found under the
    parent PF in sysfs (a specific ``vfIndex``, or the first VF with a netdev).
    """

    kinds = ("sriov-vf",)

    def __init__(self, ops: LinkOps, sysfs_root: Path = Path("/sys")):
        super().__init__(ops)
        self.sysfs_root = Path(sysfs_root)

    def prepare(self, request: PrepareRequest) -> PrepareResult:
        cfg = netdev_config(request.config, self.kind)
        container_name = self.container_name(cfg)

        vf_name = request.allocated_device
        if not vf_name:
            if not cfg.parent:
                raise ConfigError("either an allocated device or a parent PF is required for sriov-vf")
            vf_name = self.find_vf(cfg.parent, cfg.vf_index)

        self.require_link(vf_name, "VF interface")
        if cfg.mtu > 0:
            self.ops.link_set_mtu(vf_name, cfg.mtu)
        self.ops.link_set_up(vf_name)
        log.info(f"Prepared SR-IOV VF {vf_name} for claim {request.claim_uid}")

        return self.build_result(
            request,
            device_name=vf_name,
            host_interface=vf_name,
            container_name=container_name,
            metadata={"vfInterface": vf_name},
        )

    def unprepare(self, request: UnprepareRequest) -> None:
        vf_name = request.allocation.metadata.get("vfInterface", "")
        if not vf_name:
            return
        if not self.ops.link_exists(vf_name):
            log.debug(f"SR-IOV VF {vf_name} not found during unprepare")
            return
        try:
            self.ops.link_set_down(vf_name)
        except ResourceError as e:
            log.warning(f"Failed to bring down VF {vf_name}: {e}")
        log.info(f"Unprepared SR-IOV VF {vf_name}")

    def find_vf(self, pf_name: str, vf_index: Optional[int] = None) -> str:
        """
        Return the netdev name of a VF on ``pf_name``.

        Raises:
            ResourceError: If the PF or a matching VF cannot be found.
        """
        device_dir = self.sysfs_root / "class" / "net" / pf_name / "device"
        if vf_index is not None:
            name = self._vf_netdev(device_dir / f"virtfn{vf_index}")
            if name is None:
                raise ResourceError(f"no net device for VF index {vf_index} on PF {pf_name}")
            return name

        try:
            entries = [p for p in device_dir.iterdir() if _VIRTFN_RE.match(p.name)]
        except OSError as e:
            raise ResourceError(f"failed to read PF device dir {device_dir}: {e}") from e

        for entry in sorted(entries, key=lambda p: int(p.name[len("virtfn"):])):
            name = self._vf_netdev(entry)
            if name is not None:
                return name
        raise ResourceError(f"no available VFs found on PF {pf_name}")

    @staticmethod
    def _vf_netdev(vf_dir: Path) -> Optional[str]:
        try:
            names = sorted(p.name for p in (vf_dir / "net").iterdir())
        except OSError:
            return None
        return names[0] if names else None
