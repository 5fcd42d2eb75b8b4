"""
RoCE composite handler: an RDMA verbs device plus a network interface.

The RDMA device is the scarce half and is acquired first; the network
interface is only created once the RDMA side succeeded. If the interface
fails, the RDMA allocation is undone (see ``Saga``). The combined allocation
keeps both halves' metadata under ``rdma.`` and ``net.`` prefixes so each can
be rebuilt and released on its own later.
"""

from typing import Dict, List

from netdra.config.logging_config import get_logger
from netdra.handler.combo.saga import Saga
from netdra.handler.errors import ComboUnprepareError, ConfigError
from netdra.handler.types import (
    AllocationInfo,
    ComboDeviceConfig,
    DeviceConfig,
    DeviceHandler,
    DeviceType,
    NetdevDeviceConfig,
    PrepareRequest,
    PrepareResult,
    RDMADeviceConfig,
    UnprepareRequest,
)

log = get_logger(__name__)

RDMA_PREFIX = "rdma."
NET_PREFIX = "net."


def _namespaced(prefix: str, metadata: Dict[str, str]) -> Dict[str, str]:
    return {f"{prefix}{key}": value for key, value in metadata.items()}


def _strip_prefix(prefix: str, metadata: Dict[str, str]) -> Dict[str, str]:
    return {key[len(prefix):]: value for key, value in metadata.items() if key.startswith(prefix)}


class RoCEHandler(DeviceHandler):
    device_type = DeviceType.COMBO
    kinds = ("roce",)

    def __init__(self, rdma_handler: DeviceHandler, netdev_handler: DeviceHandler):
        self.rdma_handler = rdma_handler
        self.netdev_handler = netdev_handler

    def validate(self, config: DeviceConfig) -> None:
        if not isinstance(config, ComboDeviceConfig) or config.combo is None:
            raise ConfigError("combo config is required for roce")
        self.rdma_handler.validate(RDMADeviceConfig(rdma=config.combo.rdma))
        self.netdev_handler.validate(NetdevDeviceConfig(netdev=config.combo.netdev))

    def prepare(self, request: PrepareRequest) -> PrepareResult:
        config = request.config
        if not isinstance(config, ComboDeviceConfig) or config.combo is None:
            raise ConfigError("combo config is required for roce")
        combo = config.combo

        rdma_request = PrepareRequest(
            claim_uid=request.claim_uid,
            config=RDMADeviceConfig(rdma=combo.rdma),
            namespace=request.namespace,
            claim_name=request.claim_name,
            allocated_device=request.allocated_device,
        )
        net_request = PrepareRequest(
            claim_uid=request.claim_uid,
            config=NetdevDeviceConfig(netdev=combo.netdev),
            namespace=request.namespace,
            claim_name=request.claim_name,
        )

        saga = Saga(f"roce prepare for claim {request.claim_uid}")
        saga.add_step(
            "rdma",
            lambda: self.rdma_handler.prepare(rdma_request),
            lambda result: self.rdma_handler.unprepare(
                UnprepareRequest(claim_uid=request.claim_uid, allocation=result.allocation)
            ),
        )
        saga.add_step(
            "netdev",
            lambda: self.netdev_handler.prepare(net_request),
            lambda result: self.netdev_handler.unprepare(
                UnprepareRequest(claim_uid=request.claim_uid, allocation=result.allocation)
            ),
        )
        rdma_result, net_result = saga.execute()

        metadata = {
            "rdma_device": rdma_result.device_name,
            "net_interface": net_result.device_name,
            "net_kind": net_result.allocation.kind,
            **_namespaced(RDMA_PREFIX, rdma_result.allocation.metadata),
            **_namespaced(NET_PREFIX, net_result.allocation.metadata),
        }
        log.info(
            f"Prepared RoCE device: rdma={rdma_result.device_name}, "
            f"net={net_result.device_name} for claim {request.claim_uid}"
        )

        return PrepareResult(
            pool_name=rdma_result.pool_name,
            device_name=rdma_result.device_name,
            edits=rdma_result.edits.merge(net_result.edits),
            allocation=AllocationInfo(
                type=DeviceType.COMBO,
                kind="roce",
                claim_uid=request.claim_uid,
                device_name=rdma_result.device_name,
                metadata=metadata,
            ),
        )

    def unprepare(self, request: UnprepareRequest) -> None:
        """Release both halves. Both are always attempted; every failure is reported."""
        combined = request.allocation
        claim_uid = combined.claim_uid or request.claim_uid
        metadata = combined.metadata

        net_allocation = AllocationInfo(
            type=DeviceType.NETDEV,
            kind=metadata.get("net_kind", ""),
            claim_uid=claim_uid,
            device_name=metadata.get("net_interface", ""),
            metadata=_strip_prefix(NET_PREFIX, metadata),
        )
        rdma_allocation = AllocationInfo(
            type=DeviceType.RDMA,
            kind=self.rdma_handler.kinds[0],
            claim_uid=claim_uid,
            device_name=metadata.get("rdma_device", combined.device_name),
            metadata=_strip_prefix(RDMA_PREFIX, metadata),
        )

        errors: List[Exception] = []
        for label, handler, allocation in (
            ("netdev", self.netdev_handler, net_allocation),
            ("rdma", self.rdma_handler, rdma_allocation),
        ):
            try:
                handler.unprepare(UnprepareRequest(claim_uid=claim_uid, allocation=allocation))
            except Exception as e:
                log.error(f"RoCE {label} unprepare failed for claim {claim_uid}: {e}")
                errors.append(e)

        if errors:
            raise ComboUnprepareError("roce", errors)
        log.info(f"Unprepared RoCE device for claim {claim_uid}")
