"""Exceptions raised by device handlers and the claim driver."""

from typing import Sequence


class DeviceError(Exception):
    """Base class for every per-claim failure."""


class ConfigError(DeviceError):
    """A claim's device configuration was rejected by validate()."""


class HandlerNotFoundError(DeviceError):
    """No handler is registered for a (type, kind) pair."""

    def __init__(self, device_type: str, kind: str):
        self.device_type = device_type
        self.kind = kind
        super().__init__(f"no handler registered for type={device_type} kind={kind}")


class ResourceError(DeviceError):
    """An OS-level create/find/move/delete operation failed."""


class ComboUnprepareError(ResourceError):
    """One or more sub-handlers of a composite device failed to clean up."""

    def __init__(self, kind: str, errors: Sequence[Exception]):
        self.kind = kind
        self.errors = list(errors)
        joined = "; ".join(str(e) for e in self.errors)
        super().__init__(f"{kind} unprepare errors: [{joined}]")


class PersistenceError(DeviceError):
    """Reading or writing durable state (CDI spec or allocation sidecar) failed."""
