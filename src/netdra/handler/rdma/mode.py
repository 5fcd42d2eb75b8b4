"""
RDMA network namespace mode.

* ``shared`` (kernel default): every netns sees every RDMA device, so several
  containers may open the same uverbs device.
* ``exclusive``: a device belongs to exactly one netns and has to be moved
  into the pod's netns before a container can use it.

The mode cannot change without reconfiguring the host and restarting the
driver, so it is detected once per process and cached.
"""

from enum import Enum
from typing import ClassVar

from netdra.concurrency import Once
from netdra.config.logging_config import get_logger
from netdra.handler.errors import DeviceError
from netdra.system.iproute import LinkOps

log = get_logger(__name__)


class NetnsMode(str, Enum):
    SHARED = "shared"
    EXCLUSIVE = "exclusive"


class NetnsModeCache:
    """Process-wide cache of the detected mode."""

    _once: ClassVar[Once[NetnsMode]] = Once()

    @classmethod
    def get(cls, ops: LinkOps) -> NetnsMode:
        def detect() -> NetnsMode:
            try:
                raw = ops.rdma_netns_mode()
            except DeviceError as e:
                log.info(f"Could not detect RDMA netns mode ({e}), defaulting to shared")
                return NetnsMode.SHARED
            mode = NetnsMode.EXCLUSIVE if raw == NetnsMode.EXCLUSIVE.value else NetnsMode.SHARED
            log.info(f"Detected RDMA netns mode: {mode.value}")
            return mode

        return cls._once.run(detect)

    @classmethod
    def reset(cls) -> None:
        """Forget the cached mode. Only tests need this."""
        cls._once.reset()


def detect_netns_mode(ops: LinkOps) -> NetnsMode:
    """Return the RDMA netns mode, probing the kernel on first use."""
    return NetnsModeCache.get(ops)


def reset_detected_mode() -> None:
    NetnsModeCache.reset()
