from .errors import (
    ComboUnprepareError,
    ConfigError,
    DeviceError,
    HandlerNotFoundError,
    PersistenceError,
    ResourceError,
)
from .registry import HandlerRegistry
from .types import (
    AllocationInfo,
    ContainerEdits,
    DeviceConfig,
    DeviceHandler,
    DeviceType,
    PrepareRequest,
    PrepareResult,
    UnprepareRequest,
    parse_device_config,
)

__all__ = [
    "AllocationInfo",
    "ComboUnprepareError",
    "ConfigError",
    "ContainerEdits",
    "DeviceConfig",
    "DeviceError",
    "DeviceHandler",
    "DeviceType",
    "HandlerNotFoundError",
    "HandlerRegistry",
    "PersistenceError",
    "PrepareRequest",
    "PrepareResult",
    "ResourceError",
    "UnprepareRequest",
    "parse_device_config",
]
