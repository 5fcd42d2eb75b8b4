"""
Relocation tracker for namespace-exclusive RDMA devices.

In exclusive mode an RDMA device is visible in exactly one network
namespace. The driver prepares a claim before the pod sandbox (and its netns)
exists, so the device is registered here as *pending*. When the sandbox is
created the coordinator drains the pending entries for the pod's claims,
moves each device and records it as *active*. Release, or a stopped sandbox,
removes the active entry again.

Per claim the states are::

    unregistered -> pending -> active -> unregistered
                    pending -> unregistered   (cancelled before the sandbox started)

All mutation happens under one lock; the lock is never held while a device
is actually being moved.
"""

import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional


@dataclass(frozen=True)
class PendingMove:
    """An RDMA device waiting for its pod's netns to appear."""

    ibdev: str
    claim_uid: str


@dataclass(frozen=True)
class ActiveMove:
    """An RDMA device currently living in a pod's netns."""

    ibdev: str
    pod_uid: str
    netns_path: str
    claim_uid: str = ""


class RelocationTracker:
    """Lock-guarded hand-off table keyed by claim UID."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: Dict[str, PendingMove] = {}
        self._active: Dict[str, ActiveMove] = {}

    def add_pending(self, claim_uid: str, ibdev: str) -> None:
        with self._lock:
            self._active.pop(claim_uid, None)
            self._pending[claim_uid] = PendingMove(ibdev=ibdev, claim_uid=claim_uid)

    def remove_pending(self, claim_uid: str) -> Optional[PendingMove]:
        with self._lock:
            return self._pending.pop(claim_uid, None)

    def consume_pending_for_claims(self, claim_uids: Iterable[str]) -> List[PendingMove]:
        """Remove and return the pending moves for the given claims."""
        with self._lock:
            moves = []
            for uid in claim_uids:
                move = self._pending.pop(uid, None)
                if move is not None:
                    moves.append(move)
            return moves

    def mark_active(self, claim_uid: str, pod_uid: str, ibdev: str, netns_path: str) -> None:
        with self._lock:
            self._pending.pop(claim_uid, None)
            self._active[claim_uid] = ActiveMove(
                ibdev=ibdev,
                pod_uid=pod_uid,
                netns_path=netns_path,
                claim_uid=claim_uid,
            )

    def get_active_for_pod(self, pod_uid: str) -> List[ActiveMove]:
        with self._lock:
            return [m for m in self._active.values() if m.pod_uid == pod_uid]

    def remove_active(self, claim_uid: str) -> Optional[ActiveMove]:
        with self._lock:
            return self._active.pop(claim_uid, None)

    def remove_active_for_pod(self, pod_uid: str) -> List[ActiveMove]:
        """Remove and return every active move belonging to a pod."""
        with self._lock:
            claims = [uid for uid, m in self._active.items() if m.pod_uid == pod_uid]
            return [self._active.pop(uid) for uid in claims]

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def active_count(self) -> int:
        with self._lock:
            return len(self._active)

    def __repr__(self) -> str:
        with self._lock:
            return f"RelocationTracker(pending={len(self._pending)}, active={len(self._active)})"
