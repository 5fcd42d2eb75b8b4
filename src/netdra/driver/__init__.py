from .cdi import CDIStore
from .claims import (
    ClaimPrepareResult,
    DeviceAllocationResult,
    NamespacedObject,
    OpaqueDeviceConfig,
    PreparedDevice,
    ResourceClaim,
)
from .driver import Driver

__all__ = [
    "CDIStore",
    "ClaimPrepareResult",
    "DeviceAllocationResult",
    "Driver",
    "NamespacedObject",
    "OpaqueDeviceConfig",
    "PreparedDevice",
    "ResourceClaim",
]
