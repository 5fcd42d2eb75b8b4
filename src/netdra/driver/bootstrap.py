"""Wiring of handlers, tracker and driver from the environment."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from netdra.config.environment import Environment
from netdra.config.logging_config import get_logger
from netdra.driver.cdi import CDIStore
from netdra.driver.driver import Driver
from netdra.handler.combo import RoCEHandler
from netdra.handler.netdev import (
    DummyHandler,
    HostDeviceHandler,
    IpoibHandler,
    IpvlanHandler,
    MacvlanHandler,
    SriovVfHandler,
    VethHandler,
)
from netdra.handler.rdma import UverbsHandler
from netdra.handler.registry import HandlerRegistry
from netdra.nri import RelocationTracker, SandboxEventCoordinator
from netdra.system.iproute import IPRoute2, LinkOps

log = get_logger(__name__)


def build_handler_registry(
    ops: LinkOps,
    tracker: Optional[RelocationTracker] = None,
    host_netns_path: Optional[str] = None,
    ib_dev_dir: Optional[Path] = None,
    sysfs_root: Optional[Path] = None,
) -> HandlerRegistry:
    """Register every built-in handler. Unset paths come from ``Environment``."""
    host_netns_path = host_netns_path or Environment.get_host_netns_path()
    ib_dev_dir = ib_dev_dir or Environment.get_ib_dev_dir()
    sysfs_root = sysfs_root or Environment.get_sysfs_root()

    registry = HandlerRegistry()
    registry.register(MacvlanHandler(ops))
    registry.register(IpvlanHandler(ops))
    registry.register(VethHandler(ops))
    registry.register(SriovVfHandler(ops, sysfs_root=sysfs_root))
    dummy = DummyHandler(ops)
    registry.register(dummy)
    registry.register(HostDeviceHandler(ops))
    registry.register(IpoibHandler(ops))

    uverbs = UverbsHandler(
        ops,
        tracker=tracker,
        host_netns_path=host_netns_path,
        ib_dev_dir=ib_dev_dir,
        sysfs_root=sysfs_root,
    )
    registry.register(uverbs)

    # The network half of RoCE is a plain dummy interface
    registry.register(RoCEHandler(uverbs, dummy))

    for device_type, kinds in registry.list_registered().items():
        log.info(f"Registered handlers for type={device_type}: {', '.join(kinds)}")
    return registry


@dataclass
class NodeServices:
    """The driver and the sandbox coordinator of one node, sharing one tracker."""

    driver: Driver
    coordinator: SandboxEventCoordinator
    tracker: RelocationTracker


def create_node_services(ops: Optional[LinkOps] = None, cdi_dir: Optional[Path] = None) -> NodeServices:
    """
    Wire a Driver and a SandboxEventCoordinator around one RelocationTracker.

    The uverbs handler registers pending moves at prepare and looks up active
    moves at unprepare; the coordinator turns pending moves into active ones
    when a sandbox starts. Both must see the same tracker for exclusive mode
    hand-off to work.
    """
    ops = ops or IPRoute2()
    tracker = RelocationTracker()
    host_netns_path = Environment.get_host_netns_path()
    driver_name = Environment.get_driver_name()

    store = CDIStore(cdi_dir or Environment.get_cdi_dir(), driver_name)
    registry = build_handler_registry(ops, tracker, host_netns_path=host_netns_path)
    driver = Driver(driver_name, registry, store)
    coordinator = SandboxEventCoordinator(tracker, ops, host_netns_path=host_netns_path)
    return NodeServices(driver=driver, coordinator=coordinator, tracker=tracker)


def create_driver(ops: Optional[LinkOps] = None, cdi_dir: Optional[Path] = None) -> Driver:
    return create_node_services(ops, cdi_dir).driver
