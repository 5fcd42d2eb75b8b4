"""
Network namespace switching for the calling thread.

Python threads map one-to-one onto OS threads, so ``setns`` only affects the
thread that calls it. ``enter_netns`` moves the current thread into another
network namespace for the duration of a ``with`` block and moves it back on
every exit path.
"""

import os
from contextlib import contextmanager
from typing import Generator

from netdra.config.logging_config import get_logger
from netdra.handler.errors import DeviceError, ResourceError
from netdra.system.iproute import LinkOps

log = get_logger(__name__)

THREAD_NETNS_PATH = "/proc/thread-self/ns/net"


def _open_ns(path: str) -> int:
    try:
        return os.open(path, os.O_RDONLY)
    except OSError as e:
        raise ResourceError(f"open netns {path}: {e}") from e


@contextmanager
def enter_netns(path: str) -> Generator[None, None, None]:
    """
    Switch the calling thread into the network namespace at ``path``.

    Raises:
        ResourceError: If either namespace cannot be opened or switched to,
            or if the original namespace cannot be restored.
    """
    original = _open_ns(THREAD_NETNS_PATH)
    try:
        target = _open_ns(path)
        try:
            os.setns(target, os.CLONE_NEWNET)
        except OSError as e:
            raise ResourceError(f"setns {path}: {e}") from e
        finally:
            os.close(target)

        try:
            yield
        finally:
            try:
                os.setns(original, os.CLONE_NEWNET)
            except OSError as e:
                log.error(f"Failed to restore original netns after entering {path}: {e}")
                raise ResourceError(f"restore netns: {e}") from e
    finally:
        os.close(original)


def return_rdma_to_host(
    ops: LinkOps,
    ibdev: str,
    pod_netns_path: str,
    host_netns_path: str,
) -> None:
    """
    Move an RDMA device from a pod's netns back to the host netns.

    Best effort: a device that is no longer visible is assumed to have been
    reclaimed by the kernel when the namespace was torn down. Never raises.
    """
    if not pod_netns_path:
        log.debug(f"No pod netns recorded for RDMA device {ibdev}, nothing to return")
        return
    try:
        with enter_netns(pod_netns_path):
            if not ops.rdma_link_exists(ibdev):
                log.debug(f"RDMA device {ibdev} not found in {pod_netns_path}, assuming reclaimed")
                return
            ops.rdma_set_netns(ibdev, host_netns_path)
        log.info(f"Returned RDMA device {ibdev} from {pod_netns_path} to host netns")
    except DeviceError as e:
        log.warning(f"Could not return RDMA device {ibdev} to host netns: {e}")
