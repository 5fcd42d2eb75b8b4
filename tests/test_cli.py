"""Tests for netdra CLI commands."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

import netdra.cli as cli_module
from netdra.cli import _get_version, cli
from netdra.driver.cdi import CDIStore
from netdra.handler.types import AllocationInfo, ContainerEdits, DeviceType

CLAIM_UID = "12345678-aaaa-bbbb-cccc-1234567890ab"


@pytest.fixture
def fake_ops(make_link_ops, monkeypatch):
    ops = make_link_ops(netns_mode="exclusive")
    monkeypatch.setattr(cli_module, "get_link_ops", lambda: ops)
    return ops


@pytest.fixture
def cdi_dir(tmp_path, monkeypatch):
    path = tmp_path / "cdi"
    monkeypatch.setenv("CDI_DIR", str(path))
    monkeypatch.delenv("DRIVER_NAME", raising=False)
    return path


def persist_dummy(cdi_dir, fake_ops) -> AllocationInfo:
    """Persist a dummy allocation the way the driver would, with its link present."""
    name = f"dm{CLAIM_UID[:8]}"
    fake_ops.links[name] = {"kind": "dummy", "up": True, "mtu": 1500}
    store = CDIStore(cdi_dir, "dra.example.com")
    allocation = AllocationInfo(
        type=DeviceType.NETDEV,
        kind="dummy",
        claim_uid=CLAIM_UID,
        device_name=name,
        metadata={"createdInterface": name, "poolName": "default"},
    )
    store.write_spec(CLAIM_UID, allocation.type, allocation.device_name, ContainerEdits())
    store.save_allocation(allocation)
    return allocation


class TestVersionOption:
    """Tests for the --version flag."""

    def test_version_option_with_cli_runner(self):
        """Test --version flag using click's test runner."""
        runner = CliRunner()
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "netdra" in result.output.lower()
        assert "version" in result.output.lower()

    def test_get_version_function(self):
        """Test the _get_version helper function returns a string."""
        version = _get_version()
        assert isinstance(version, str)
        assert version


class TestHandlersCommand:
    def test_lists_every_type(self, fake_ops):
        runner = CliRunner()
        result = runner.invoke(cli, ["handlers"])
        assert result.exit_code == 0
        for word in ("netdev", "rdma", "combo", "macvlan", "uverbs", "roce"):
            assert word in result.output


class TestAllocationsCommand:
    """Tests for the 'netdra allocations' command."""

    def test_empty(self, cdi_dir):
        runner = CliRunner()
        result = runner.invoke(cli, ["allocations"])
        assert result.exit_code == 0
        assert "No allocations" in result.output

    def test_json_output(self, cdi_dir, fake_ops):
        persist_dummy(cdi_dir, fake_ops)

        runner = CliRunner()
        result = runner.invoke(cli, ["allocations", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert len(data) == 1
        assert data[0]["claimUID"] == CLAIM_UID
        assert data[0]["type"] == "netdev"
        assert data[0]["metadata"]["createdInterface"] == "dm12345678"

    def test_table_output(self, cdi_dir, fake_ops):
        persist_dummy(cdi_dir, fake_ops)

        runner = CliRunner()
        result = runner.invoke(cli, ["allocations", "--cdi-dir", str(cdi_dir)])

        assert result.exit_code == 0
        assert "netdev" in result.output
        assert "dummy" in result.output


class TestNetnsModeCommand:
    def test_reports_mode(self, fake_ops):
        runner = CliRunner()
        result = runner.invoke(cli, ["netns-mode"])
        assert result.exit_code == 0
        assert "RDMA netns mode: exclusive" in result.output


class TestReleaseCommand:
    """Tests for the 'netdra release' command."""

    def test_release_persisted_claim(self, cdi_dir, fake_ops):
        persist_dummy(cdi_dir, fake_ops)

        runner = CliRunner()
        result = runner.invoke(cli, ["release", CLAIM_UID])

        assert result.exit_code == 0
        assert f"Released {CLAIM_UID}" in result.output
        assert "dm12345678" not in fake_ops.links
        assert list(cdi_dir.iterdir()) == []

    def test_release_unknown_claim_succeeds(self, cdi_dir, fake_ops):
        runner = CliRunner()
        result = runner.invoke(cli, ["release", CLAIM_UID])
        assert result.exit_code == 0

    def test_release_failure_exits_nonzero(self, cdi_dir, fake_ops):
        from netdra.handler.errors import ResourceError

        persist_dummy(cdi_dir, fake_ops)
        fake_ops.failures["link_delete"] = ResourceError("device busy")

        runner = CliRunner()
        result = runner.invoke(cli, ["release", CLAIM_UID])

        assert result.exit_code == 1
        assert CLAIM_UID in result.output
        assert CDIStore(cdi_dir, "dra.example.com").allocation_path(CLAIM_UID).exists()

    def test_requires_claim_uid(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["release"])
        assert result.exit_code != 0


class TestSettingsCommand:
    def test_show(self, cdi_dir):
        runner = CliRunner()
        result = runner.invoke(cli, ["settings", "show"])
        assert result.exit_code == 0
        assert "CDI_DIR" in result.output
        assert "DRIVER_NAME" in result.output
