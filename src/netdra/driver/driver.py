"""
Allocate/release orchestrator.

``Driver`` receives batches of claims from the kubelet plugin boundary,
resolves each claim to a handler, and keeps one persisted ``AllocationInfo``
per prepared claim. The persisted state is what makes prepare idempotent:
a claim that already has state is answered from it without touching the
handler, whether the duplicate comes from a retry or from a restarted
process.

Claims in a batch are independent; a failure is reported in that claim's
result and never stops its siblings. The caller guarantees that calls for
the same claim UID do not overlap.
"""

import threading
from typing import Dict, Iterable, Optional

from netdra.config.logging_config import get_logger
from netdra.driver.cdi import CDIStore
from netdra.driver.claims import (
    ClaimPrepareResult,
    NamespacedObject,
    PreparedDevice,
    ResourceClaim,
)
from netdra.handler.errors import PersistenceError
from netdra.handler.registry import HandlerRegistry
from netdra.handler.types import (
    AllocationInfo,
    DeviceHandler,
    PrepareRequest,
    UnprepareRequest,
)

log = get_logger(__name__)

POOL_NAME_KEY = "poolName"
DEFAULT_POOL = "default"


class Driver:
    def __init__(self, driver_name: str, registry: HandlerRegistry, store: CDIStore):
        self.driver_name = driver_name
        self.registry = registry
        self.store = store
        self._lock = threading.Lock()
        self._allocations: Dict[str, AllocationInfo] = {}
        self.rehydrate()

    def rehydrate(self) -> None:
        """Merge the persisted allocations into the in-memory map."""
        loaded = self.store.load_allocations()
        with self._lock:
            self._allocations.update(loaded)
        if loaded:
            log.debug(f"Loaded {len(loaded)} persisted allocation(s) from {self.store.cdi_dir}")

    def get_allocation(self, claim_uid: str) -> Optional[AllocationInfo]:
        with self._lock:
            return self._allocations.get(claim_uid)

    def allocations(self) -> Dict[str, AllocationInfo]:
        with self._lock:
            return dict(self._allocations)

    # ------------------------------------------------------------------
    # Prepare
    # ------------------------------------------------------------------

    def prepare_resource_claims(self, claims: Iterable[ResourceClaim]) -> Dict[str, ClaimPrepareResult]:
        """Prepare every claim in the batch and return one result per claim UID."""
        self.rehydrate()
        results: Dict[str, ClaimPrepareResult] = {}
        for claim in claims:
            try:
                device = self._prepare_claim(claim)
                results[claim.uid] = ClaimPrepareResult(devices=[device])
            except Exception as e:
                log.error(f"Failed to prepare claim {claim.namespace}/{claim.name} ({claim.uid}): {e}")
                results[claim.uid] = ClaimPrepareResult(error=e)
        return results

    def _prepare_claim(self, claim: ResourceClaim) -> PreparedDevice:
        existing = self.get_allocation(claim.uid)
        if existing is not None:
            log.info(f"Claim {claim.uid} already prepared, returning persisted result")
            return self._prepared_device(existing)

        config = claim.device_config(self.driver_name)
        handler = self.registry.must_get(config.type, config.kind)
        handler.validate(config)

        result = handler.prepare(
            PrepareRequest(
                claim_uid=claim.uid,
                config=config,
                namespace=claim.namespace,
                claim_name=claim.name,
                allocated_device=claim.allocated_device(self.driver_name),
            )
        )
        allocation = result.allocation.model_copy(
            update={
                "claim_uid": claim.uid,
                "device_name": result.allocation.device_name or result.device_name,
                "metadata": {**result.allocation.metadata, POOL_NAME_KEY: result.pool_name},
            }
        )

        try:
            self.store.write_spec(claim.uid, allocation.type, allocation.device_name, result.edits)
        except PersistenceError:
            self._discard(handler, claim.uid, allocation)
            raise

        try:
            self.store.save_allocation(allocation)
        except PersistenceError as e:
            # The claim is prepared; only recovery after a crash is affected.
            log.warning(f"Failed to persist allocation state for claim {claim.uid}: {e}")

        with self._lock:
            self._allocations[claim.uid] = allocation

        log.info(
            f"Prepared claim {claim.namespace}/{claim.name} ({claim.uid}): "
            f"{allocation.type.value}/{allocation.kind} device {allocation.device_name}"
        )
        return self._prepared_device(allocation)

    def _prepared_device(self, allocation: AllocationInfo) -> PreparedDevice:
        return PreparedDevice(
            pool_name=allocation.metadata.get(POOL_NAME_KEY, DEFAULT_POOL),
            device_name=allocation.device_name,
            cdi_device_ids=[self.store.cdi_device_id(allocation.type, allocation.device_name)],
        )

    def _discard(self, handler: DeviceHandler, claim_uid: str, allocation: AllocationInfo) -> None:
        """Undo a prepare whose CDI spec could not be written."""
        try:
            handler.unprepare(UnprepareRequest(claim_uid=claim_uid, allocation=allocation))
        except Exception as e:
            log.warning(f"Failed to undo allocation for claim {claim_uid}: {e}")
        try:
            self.store.remove_spec(claim_uid)
        except PersistenceError as e:
            log.warning(f"Failed to remove partial CDI spec for claim {claim_uid}: {e}")

    # ------------------------------------------------------------------
    # Unprepare
    # ------------------------------------------------------------------

    def unprepare_resource_claims(self, claims: Iterable[NamespacedObject]) -> Dict[str, Optional[Exception]]:
        """Release every claim in the batch. A claim without state is already released."""
        self.rehydrate()
        results: Dict[str, Optional[Exception]] = {}
        for claim in claims:
            try:
                self._unprepare_claim(claim)
                results[claim.uid] = None
            except Exception as e:
                log.error(f"Failed to unprepare claim {claim.namespace}/{claim.name} ({claim.uid}): {e}")
                results[claim.uid] = e
        return results

    def _unprepare_claim(self, claim: NamespacedObject) -> None:
        allocation = self.get_allocation(claim.uid)
        if allocation is None:
            log.debug(f"No allocation for claim {claim.uid}, nothing to unprepare")
            return

        handler = self.registry.must_get(allocation.type, allocation.kind)
        handler.unprepare(UnprepareRequest(claim_uid=claim.uid, allocation=allocation))

        self.store.remove(claim.uid)
        with self._lock:
            self._allocations.pop(claim.uid, None)
        log.info(f"Unprepared claim {claim.namespace}/{claim.name} ({claim.uid})")
