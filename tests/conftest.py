from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pytest

from netdra.config.environment import Environment
from netdra.handler.errors import ResourceError
from netdra.handler.rdma.mode import reset_detected_mode
from netdra.handler.types import (
    AllocationInfo,
    ContainerEdits,
    DeviceHandler,
    DeviceType,
    PrepareRequest,
    PrepareResult,
    UnprepareRequest,
)


class FakeLinkOps:
    """In-memory stand-in for IPRoute2 that records every call."""

    def __init__(
        self,
        links: Iterable[str] = (),
        rdma_devices: Iterable[str] = (),
        netns_mode: Any = "shared",
    ):
        self.links: Dict[str, Dict[str, Any]] = {
            name: {"kind": "physical", "up": False, "mtu": 1500} for name in links
        }
        self.rdma: Dict[str, str] = {ibdev: "host" for ibdev in rdma_devices}
        self.netns_mode = netns_mode
        self.calls: List[Tuple[Any, ...]] = []
        self.failures: Dict[str, Exception] = {}

    def _call(self, method: str, *args: Any) -> None:
        self.calls.append((method, *args))
        if method in self.failures:
            raise self.failures[method]

    def called(self, method: str) -> List[Tuple[Any, ...]]:
        return [c[1:] for c in self.calls if c[0] == method]

    def _require(self, name: str) -> Dict[str, Any]:
        if name not in self.links:
            raise ResourceError(f"Cannot find device {name}")
        return self.links[name]

    def link_exists(self, name: str) -> bool:
        self._call("link_exists", name)
        return name in self.links

    def link_add(self, name: str, kind: str, parent: str = "", args: Sequence[str] = ()) -> None:
        self._call("link_add", name, kind, parent, tuple(args))
        if name in self.links:
            raise ResourceError(f"{name} already exists")
        self.links[name] = {"kind": kind, "parent": parent, "args": tuple(args), "up": False, "mtu": 0}
        if kind == "veth":
            peer = list(args)[list(args).index("name") + 1]
            self.links[peer] = {"kind": "veth", "peer_of": name, "up": False, "mtu": 0}

    def link_set_up(self, name: str) -> None:
        self._call("link_set_up", name)
        self._require(name)["up"] = True

    def link_set_down(self, name: str) -> None:
        self._call("link_set_down", name)
        self._require(name)["up"] = False

    def link_set_mtu(self, name: str, mtu: int) -> None:
        self._call("link_set_mtu", name, mtu)
        self._require(name)["mtu"] = mtu

    def link_delete(self, name: str) -> None:
        self._call("link_delete", name)
        self._require(name)
        del self.links[name]
        for peer in [n for n, link in self.links.items() if link.get("peer_of") == name]:
            del self.links[peer]

    def rdma_link_exists(self, ibdev: str) -> bool:
        self._call("rdma_link_exists", ibdev)
        return ibdev in self.rdma

    def rdma_set_netns(self, ibdev: str, netns_path: str) -> None:
        self._call("rdma_set_netns", ibdev, netns_path)
        if ibdev not in self.rdma:
            raise ResourceError(f"RDMA device {ibdev} not found")
        self.rdma[ibdev] = netns_path

    def rdma_netns_mode(self) -> str:
        self._call("rdma_netns_mode")
        if isinstance(self.netns_mode, Exception):
            raise self.netns_mode
        return self.netns_mode


class FakeHandler(DeviceHandler):
    """Handler with scripted results that records what it was asked to do."""

    def __init__(
        self,
        device_type: DeviceType = DeviceType.NETDEV,
        kinds: Sequence[str] = ("dummy",),
        device_name: str = "dev0",
        pool_name: str = "default",
        edits: Optional[ContainerEdits] = None,
        metadata: Optional[Dict[str, str]] = None,
        validate_error: Optional[Exception] = None,
        prepare_error: Optional[Exception] = None,
        unprepare_error: Optional[Exception] = None,
    ):
        self.device_type = device_type
        self.kinds = tuple(kinds)
        self.device_name = device_name
        self.pool_name = pool_name
        self.edits = edits or ContainerEdits()
        self.metadata = metadata if metadata is not None else {"device": device_name}
        self.validate_error = validate_error
        self.prepare_error = prepare_error
        self.unprepare_error = unprepare_error
        self.validate_calls: List[Any] = []
        self.prepare_calls: List[PrepareRequest] = []
        self.unprepare_calls: List[UnprepareRequest] = []

    def validate(self, config):
        self.validate_calls.append(config)
        if self.validate_error is not None:
            raise self.validate_error

    def prepare(self, request: PrepareRequest) -> PrepareResult:
        self.prepare_calls.append(request)
        if self.prepare_error is not None:
            raise self.prepare_error
        kind = request.config.kind if request.config.kind in self.kinds else self.kinds[0]
        return PrepareResult(
            pool_name=self.pool_name,
            device_name=self.device_name,
            edits=self.edits,
            allocation=AllocationInfo(
                type=self.device_type,
                kind=kind,
                claim_uid=request.claim_uid,
                device_name=self.device_name,
                metadata=dict(self.metadata),
            ),
        )

    def unprepare(self, request: UnprepareRequest) -> None:
        self.unprepare_calls.append(request)
        if self.unprepare_error is not None:
            raise self.unprepare_error


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Point the settings file at a temp dir and clear process-wide caches."""
    monkeypatch.setenv("NETDRA_CONFIG_DIR", str(tmp_path / "config"))
    Environment.reset()
    reset_detected_mode()
    yield
    Environment.reset()
    reset_detected_mode()


@pytest.fixture
def link_ops():
    return FakeLinkOps()


@pytest.fixture
def make_link_ops():
    return FakeLinkOps


@pytest.fixture
def make_handler():
    return FakeHandler
