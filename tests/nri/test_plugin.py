import pytest

import netdra.nri.plugin as plugin_module
import netdra.system.netns as netns_module
from netdra.handler.errors import ResourceError
from netdra.nri.plugin import PodSandbox, SandboxEventCoordinator, extract_claim_uids
from netdra.nri.tracker import RelocationTracker

CLAIM_A = "0a1b2c3d-0000-1111-2222-333344445555"
CLAIM_B = "ffffffff-aaaa-bbbb-cccc-ddddeeeeffff"


class TestExtractClaimUids:
    def test_finds_uids_under_claim_prefix(self):
        annotations = {
            "resource.kubernetes.io/pod-claim-rdma": f"claim {CLAIM_A}",
            "other.io/annotation": CLAIM_B,
        }
        assert extract_claim_uids(annotations) == [CLAIM_A]

    def test_multiple_uids_in_one_value(self):
        annotations = {"resource.kubernetes.io/claims": f"{CLAIM_A},{CLAIM_B}"}
        assert extract_claim_uids(annotations) == [CLAIM_A, CLAIM_B]

    def test_deduplicates_across_keys(self):
        annotations = {
            "resource.kubernetes.io/a": CLAIM_A,
            "resource.kubernetes.io/b": f"{CLAIM_A} {CLAIM_B}",
        }
        assert extract_claim_uids(annotations) == [CLAIM_A, CLAIM_B]

    def test_ignores_non_uuid_values(self):
        annotations = {"resource.kubernetes.io/a": "0a1b2c3d-0000-1111-2222-33334444555"}
        assert extract_claim_uids(annotations) == []

    def test_uppercase_hex(self):
        annotations = {"resource.kubernetes.io/a": CLAIM_B.upper()}
        assert extract_claim_uids(annotations) == [CLAIM_B.upper()]


class TestPodSandbox:
    def test_from_nri(self):
        pod = PodSandbox.from_nri(
            {
                "id": "sandbox-1",
                "uid": "pod-1",
                "namespace": "default",
                "name": "trainer",
                "annotations": {"resource.kubernetes.io/a": CLAIM_A},
                "linux": {
                    "namespaces": [
                        {"type": "ipc", "path": "/proc/9/ns/ipc"},
                        {"type": "network", "path": "/var/run/netns/cni-1"},
                    ]
                },
            }
        )
        assert pod.uid == "pod-1"
        assert pod.display_name == "default/trainer"
        assert pod.annotations == {"resource.kubernetes.io/a": CLAIM_A}
        assert pod.netns_path == "/var/run/netns/cni-1"

    def test_from_nri_without_linux_section(self):
        pod = PodSandbox.from_nri({"uid": "pod-1"})
        assert pod.netns_path == ""
        assert pod.annotations == {}


@pytest.fixture
def netns_file(tmp_path):
    path = tmp_path / "netns"
    path.touch()
    return str(path)


def make_pod(netns_path: str, *claims: str) -> PodSandbox:
    return PodSandbox(
        uid="pod-1",
        namespace="default",
        name="trainer",
        annotations={f"resource.kubernetes.io/claim-{i}": uid for i, uid in enumerate(claims)},
        netns_path=netns_path,
    )


class TestSandboxCreated:
    def test_moves_pending_devices(self, make_link_ops, netns_file):
        ops = make_link_ops(rdma_devices=["mlx5_0"])
        tracker = RelocationTracker()
        tracker.add_pending(CLAIM_A, "mlx5_0")

        SandboxEventCoordinator(tracker, ops).sandbox_created(make_pod(netns_file, CLAIM_A))

        assert ops.rdma["mlx5_0"] == netns_file
        assert tracker.pending_count() == 0
        active = tracker.get_active_for_pod("pod-1")
        assert [(m.ibdev, m.netns_path, m.claim_uid) for m in active] == [("mlx5_0", netns_file, CLAIM_A)]

    def test_pod_without_claims_is_ignored(self, link_ops, netns_file):
        tracker = RelocationTracker()
        tracker.add_pending(CLAIM_A, "mlx5_0")

        SandboxEventCoordinator(tracker, link_ops).sandbox_created(make_pod(netns_file))

        assert tracker.pending_count() == 1
        assert link_ops.calls == []

    def test_missing_netns_path_requeues(self, make_link_ops):
        ops = make_link_ops(rdma_devices=["mlx5_0"])
        tracker = RelocationTracker()
        tracker.add_pending(CLAIM_A, "mlx5_0")

        SandboxEventCoordinator(tracker, ops).sandbox_created(make_pod("", CLAIM_A))

        assert tracker.pending_count() == 1
        assert ops.called("rdma_set_netns") == []

    def test_unopenable_netns_requeues_and_raises(self, make_link_ops, tmp_path):
        ops = make_link_ops(rdma_devices=["mlx5_0", "mlx5_1"])
        tracker = RelocationTracker()
        tracker.add_pending(CLAIM_A, "mlx5_0")
        tracker.add_pending(CLAIM_B, "mlx5_1")

        with pytest.raises(ResourceError):
            SandboxEventCoordinator(tracker, ops).sandbox_created(
                make_pod(str(tmp_path / "gone"), CLAIM_A, CLAIM_B)
            )

        assert tracker.pending_count() == 2
        assert tracker.active_count() == 0

    def test_failed_move_is_requeued_and_others_continue(self, make_link_ops, netns_file):
        ops = make_link_ops(rdma_devices=["mlx5_1"])
        tracker = RelocationTracker()
        tracker.add_pending(CLAIM_A, "mlx5_0")
        tracker.add_pending(CLAIM_B, "mlx5_1")

        SandboxEventCoordinator(tracker, ops).sandbox_created(make_pod(netns_file, CLAIM_A, CLAIM_B))

        assert tracker.consume_pending_for_claims([CLAIM_A])[0].ibdev == "mlx5_0"
        assert [m.ibdev for m in tracker.get_active_for_pod("pod-1")] == ["mlx5_1"]

    def test_move_error_is_requeued(self, make_link_ops, netns_file):
        ops = make_link_ops(rdma_devices=["mlx5_0"])
        ops.failures["rdma_set_netns"] = ResourceError("EBUSY")
        tracker = RelocationTracker()
        tracker.add_pending(CLAIM_A, "mlx5_0")

        SandboxEventCoordinator(tracker, ops).sandbox_created(make_pod(netns_file, CLAIM_A))

        assert tracker.pending_count() == 1
        assert tracker.active_count() == 0


class TestSandboxStopped:
    def test_returns_active_devices(self, link_ops, monkeypatch):
        returned = []
        monkeypatch.setattr(
            plugin_module,
            "return_rdma_to_host",
            lambda ops, ibdev, pod_path, host_path: returned.append((ibdev, pod_path, host_path)),
        )
        tracker = RelocationTracker()
        tracker.mark_active(CLAIM_A, "pod-1", "mlx5_0", "/proc/7/ns/net")

        coordinator = SandboxEventCoordinator(tracker, link_ops, host_netns_path="/proc/1/ns/net")
        coordinator.sandbox_stopped(make_pod(""))

        assert returned == [("mlx5_0", "/proc/7/ns/net", "/proc/1/ns/net")]
        assert tracker.active_count() == 0

    def test_nothing_active(self, link_ops, monkeypatch):
        returned = []
        monkeypatch.setattr(plugin_module, "return_rdma_to_host", lambda *args: returned.append(args))

        SandboxEventCoordinator(RelocationTracker(), link_ops).sandbox_stopped(make_pod(""))

        assert returned == []

    def test_never_raises_when_netns_is_gone(self, make_link_ops, monkeypatch):
        def gone(path):
            raise ResourceError(f"open netns {path}: no such file")

        monkeypatch.setattr(netns_module, "enter_netns", gone)
        ops = make_link_ops(rdma_devices=["mlx5_0"])
        tracker = RelocationTracker()
        tracker.mark_active(CLAIM_A, "pod-1", "mlx5_0", "/proc/7/ns/net")

        SandboxEventCoordinator(tracker, ops).sandbox_stopped(make_pod(""))

        assert tracker.active_count() == 0
        assert ops.called("rdma_set_netns") == []
