"""
Sandbox lifecycle handling for namespace-exclusive RDMA devices.

The container runtime reports pod sandbox events (through NRI). When a
sandbox is created, the RDMA devices prepared for the pod's claims are still
pending in the relocation tracker; ``SandboxEventCoordinator`` moves them
into the new netns. When a sandbox stops, any devices still active in it are
moved back to the host netns. Unprepare normally does that first, so the stop
path is only a safety net for crashes and restarts.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping

from netdra.config.logging_config import get_logger
from netdra.handler.errors import ResourceError
from netdra.nri.tracker import PendingMove, RelocationTracker
from netdra.system.iproute import LinkOps
from netdra.system.netns import return_rdma_to_host

log = get_logger(__name__)

CLAIM_ANNOTATION_PREFIX = "resource.kubernetes.io/"

_UUID_RE = re.compile(
    r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
)


@dataclass
class PodSandbox:
    uid: str
    namespace: str = ""
    name: str = ""
    annotations: Dict[str, str] = field(default_factory=dict)
    netns_path: str = ""

    @property
    def display_name(self) -> str:
        return f"{self.namespace}/{self.name}"

    @classmethod
    def from_nri(cls, data: Mapping[str, Any]) -> "PodSandbox":
        """Build a PodSandbox from an NRI ``PodSandbox`` message decoded to a dict."""
        netns_path = ""
        linux = data.get("linux") or {}
        for ns in linux.get("namespaces") or []:
            if ns.get("type") == "network":
                netns_path = ns.get("path", "")
                break
        return cls(
            uid=data.get("uid", ""),
            namespace=data.get("namespace", ""),
            name=data.get("name", ""),
            annotations=dict(data.get("annotations") or {}),
            netns_path=netns_path,
        )


def extract_claim_uids(annotations: Mapping[str, str]) -> List[str]:
    """
    Find claim UIDs in a pod's annotations.

    Looks for UUID-shaped substrings in the values of annotations under
    ``resource.kubernetes.io/``. Each UID is returned once, in first-seen order.
    """
    uids: List[str] = []
    seen = set()
    for key, value in annotations.items():
        if not key.startswith(CLAIM_ANNOTATION_PREFIX):
            continue
        for match in _UUID_RE.finditer(value):
            uid = match.group(0)
            if uid not in seen:
                seen.add(uid)
                uids.append(uid)
    return uids


class SandboxEventCoordinator:
    def __init__(
        self,
        tracker: RelocationTracker,
        ops: LinkOps,
        host_netns_path: str = "/proc/1/ns/net",
    ):
        self.tracker = tracker
        self.ops = ops
        self.host_netns_path = host_netns_path

    def _requeue(self, moves: List[PendingMove]) -> None:
        for move in moves:
            self.tracker.add_pending(move.claim_uid, move.ibdev)

    def sandbox_created(self, pod: PodSandbox) -> None:
        """
        Move the pod's pending RDMA devices into its netns.

        A device that cannot be moved is put back as pending and the rest
        are still attempted.

        Raises:
            ResourceError: If the pod's netns cannot be opened. All drained
                moves are put back as pending first.
        """
        claim_uids = extract_claim_uids(pod.annotations)
        if not claim_uids:
            return

        moves = self.tracker.consume_pending_for_claims(claim_uids)
        if not moves:
            return

        if not pod.netns_path:
            log.warning(f"Pod {pod.display_name}: no netns path available, cannot move RDMA devices")
            self._requeue(moves)
            return

        if not Path(pod.netns_path).exists():
            log.error(f"Pod {pod.display_name}: netns {pod.netns_path} does not exist")
            self._requeue(moves)
            raise ResourceError(f"open pod netns {pod.netns_path}: no such file")

        for move in moves:
            try:
                if not self.ops.rdma_link_exists(move.ibdev):
                    raise ResourceError(f"RDMA link {move.ibdev} not found")
                self.ops.rdma_set_netns(move.ibdev, pod.netns_path)
            except ResourceError as e:
                log.error(f"Pod {pod.display_name}: failed to move RDMA device {move.ibdev}: {e}")
                self.tracker.add_pending(move.claim_uid, move.ibdev)
                continue
            self.tracker.mark_active(move.claim_uid, pod.uid, move.ibdev, pod.netns_path)
            log.info(f"Moved RDMA device {move.ibdev} into pod {pod.display_name} netns (claim={move.claim_uid})")

    def sandbox_stopped(self, pod: PodSandbox) -> None:
        """Return any RDMA devices still active in the pod to the host. Never raises."""
        moves = self.tracker.remove_active_for_pod(pod.uid)
        for move in moves:
            netns_path = pod.netns_path or move.netns_path
            return_rdma_to_host(self.ops, move.ibdev, netns_path, self.host_netns_path)
        if moves:
            log.info(f"Pod {pod.display_name} stopped: released {len(moves)} RDMA device(s)")
