"""
RDMA uverbs device handler.

A working userspace RDMA stack inside the container needs:

- ``/dev/infiniband/uverbsN``: the verbs data path
- ``/dev/infiniband/rdma_cm``: the connection manager, shared by all devices
- ``/dev/infiniband/umadN``: management datagrams for the same HCA, if present
- ``/sys/class/infiniband/<ibdev>``: read by ``ibv_get_device_list``

In exclusive netns mode the device must also be moved into the pod's netns.
That netns does not exist yet at prepare time, so prepare only registers a
pending move with the relocation tracker; the sandbox event coordinator does
the move once the sandbox has been created.
"""

import re
from pathlib import Path
from typing import Callable, List, Optional

from netdra.config.logging_config import get_logger
from netdra.handler.errors import ConfigError, ResourceError
from netdra.handler.rdma.mode import NetnsMode, detect_netns_mode
from netdra.handler.types import (
    AllocationInfo,
    ContainerEdits,
    DeviceConfig,
    DeviceHandler,
    DeviceNode,
    DeviceType,
    Mount,
    PrepareRequest,
    PrepareResult,
    RDMADeviceConfig,
    UnprepareRequest,
)
from netdra.nri.tracker import RelocationTracker
from netdra.system.iproute import LinkOps
from netdra.system.netns import return_rdma_to_host

log = get_logger(__name__)

CONTAINER_IB_DEV_DIR = "/dev/infiniband"
CONTAINER_IB_SYSFS_DIR = "/sys/class/infiniband"

_UVERBS_RE = re.compile(r"^uverbs(\d+)$")


def _check_device_name(name: str, what: str) -> None:
    if not _UVERBS_RE.match(name):
        raise ConfigError(f"{what} {name!r} is not a uverbs device name (want uverbsN)")


class UverbsHandler(DeviceHandler):
    device_type = DeviceType.RDMA
    kinds = ("uverbs",)

    def __init__(
        self,
        ops: LinkOps,
        tracker: Optional[RelocationTracker] = None,
        host_netns_path: str = "/proc/1/ns/net",
        ib_dev_dir: Path = Path("/dev/infiniband"),
        sysfs_root: Path = Path("/sys"),
        mode_resolver: Optional[Callable[[], NetnsMode]] = None,
    ):
        self.ops = ops
        self.tracker = tracker
        self.host_netns_path = host_netns_path
        self.ib_dev_dir = Path(ib_dev_dir)
        self.sysfs_root = Path(sysfs_root)
        self._mode_resolver = mode_resolver or (lambda: detect_netns_mode(self.ops))

    def _exclusive(self) -> bool:
        return self.tracker is not None and self._mode_resolver() == NetnsMode.EXCLUSIVE

    def validate(self, config: DeviceConfig) -> None:
        if not isinstance(config, RDMADeviceConfig):
            raise ConfigError(f"uverbs handler cannot serve a {config.type} config")
        if config.rdma.prefer_device:
            _check_device_name(config.rdma.prefer_device, "preferDevice")

    def prepare(self, request: PrepareRequest) -> PrepareResult:
        config = request.config
        prefer = config.rdma.prefer_device if isinstance(config, RDMADeviceConfig) else ""
        if request.allocated_device:
            _check_device_name(request.allocated_device, "allocated device")
        if prefer:
            _check_device_name(prefer, "preferDevice")
        device_name = request.allocated_device or prefer or self._find_available()

        dev_path = self.ib_dev_dir / device_name
        if not dev_path.exists():
            raise ResourceError(f"uverbs device {dev_path} not found")

        ibdev = self._resolve_ibdev(device_name)

        nodes = [self._device_node(device_name)]
        if (self.ib_dev_dir / "rdma_cm").exists():
            nodes.append(self._device_node("rdma_cm"))
        umad_name = device_name.replace("uverbs", "umad", 1)
        if (self.ib_dev_dir / umad_name).exists():
            nodes.append(self._device_node(umad_name))

        mounts: List[Mount] = []
        if ibdev:
            sys_path = self.sysfs_root / "class" / "infiniband" / ibdev
            if sys_path.exists():
                mounts.append(
                    Mount(
                        host_path=str(sys_path),
                        container_path=f"{CONTAINER_IB_SYSFS_DIR}/{ibdev}",
                        options=["ro", "bind"],
                    )
                )

        if ibdev and self._exclusive():
            assert self.tracker is not None
            self.tracker.add_pending(request.claim_uid, ibdev)
            log.info(f"Registered pending RDMA netns move for {ibdev} (claim={request.claim_uid})")

        log.info(f"Prepared RDMA uverbs device {device_name} (ibdev={ibdev or 'unknown'})")
        return PrepareResult(
            pool_name="default",
            device_name=device_name,
            edits=ContainerEdits(device_nodes=nodes, mounts=mounts),
            allocation=AllocationInfo(
                type=DeviceType.RDMA,
                kind="uverbs",
                claim_uid=request.claim_uid,
                device_name=device_name,
                metadata={
                    "uverbsDevice": device_name,
                    "ibdev": ibdev,
                    "devPath": str(dev_path),
                },
            ),
        )

    def unprepare(self, request: UnprepareRequest) -> None:
        metadata = request.allocation.metadata
        device_name = metadata.get("uverbsDevice", request.allocation.device_name)
        ibdev = metadata.get("ibdev", "")
        claim_uid = request.allocation.claim_uid or request.claim_uid

        if ibdev and self._exclusive():
            assert self.tracker is not None
            # The sandbox may never have started
            self.tracker.remove_pending(claim_uid)
            active = self.tracker.remove_active(claim_uid)
            if active is not None:
                return_rdma_to_host(self.ops, ibdev, active.netns_path, self.host_netns_path)

        log.info(f"Released RDMA uverbs device {device_name} for claim {claim_uid}")

    def _device_node(self, name: str) -> DeviceNode:
        return DeviceNode(
            path=f"{CONTAINER_IB_DEV_DIR}/{name}",
            host_path=str(self.ib_dev_dir / name),
            permissions="rw",
        )

    def _find_available(self) -> str:
        try:
            names = [p.name for p in self.ib_dev_dir.iterdir()]
        except OSError as e:
            raise ResourceError(f"failed to read {self.ib_dev_dir}: {e}") from e
        matches = sorted(
            (m for m in map(_UVERBS_RE.match, names) if m is not None),
            key=lambda m: int(m.group(1)),
        )
        if not matches:
            raise ResourceError(f"no uverbs devices found in {self.ib_dev_dir}")
        return matches[0].group(0)

    def _resolve_ibdev(self, uverbs_name: str) -> str:
        path = self.sysfs_root / "class" / "infiniband_verbs" / uverbs_name / "ibdev"
        try:
            return path.read_text().strip()
        except OSError as e:
            log.debug(f"Could not resolve IB device for {uverbs_name}: {e}")
            return ""
