"""
Link and RDMA device operations.

Handlers never talk to the kernel directly; they go through a ``LinkOps``
object. ``IPRoute2`` is the production implementation and shells out to the
``ip`` and ``rdma`` tools from iproute2. Tests substitute an in-memory fake.

Child processes inherit the network namespace of the calling thread, so
these commands act on whatever namespace ``enter_netns`` switched to.
"""

import json
import subprocess
from typing import Any, Callable, List, Optional, Protocol, Sequence

from netdra.config.logging_config import get_logger
from netdra.handler.errors import ResourceError

log = get_logger(__name__)


class LinkOps(Protocol):
    def link_exists(self, name: str) -> bool: ...

    def link_add(self, name: str, kind: str, parent: str = "", args: Sequence[str] = ()) -> None: ...

    def link_set_up(self, name: str) -> None: ...

    def link_set_down(self, name: str) -> None: ...

    def link_set_mtu(self, name: str, mtu: int) -> None: ...

    def link_delete(self, name: str) -> None: ...

    def rdma_link_exists(self, ibdev: str) -> bool: ...

    def rdma_set_netns(self, ibdev: str, netns_path: str) -> None: ...

    def rdma_netns_mode(self) -> str: ...


class IPRoute2:
    """
    ``LinkOps`` backed by the iproute2 command line tools.

    Args:
        ip_bin: Path or name of the ``ip`` binary.
        rdma_bin: Path or name of the ``rdma`` binary.
        runner: Callable with the signature of ``subprocess.run``.
    """

    def __init__(
        self,
        ip_bin: str = "ip",
        rdma_bin: str = "rdma",
        runner: Optional[Callable[..., subprocess.CompletedProcess]] = None,
    ):
        self.ip_bin = ip_bin
        self.rdma_bin = rdma_bin
        self._runner = runner or subprocess.run

    def _run(self, command: List[str], check: bool = True) -> subprocess.CompletedProcess:
        log.debug(f"Running: {' '.join(command)}")
        try:
            result = self._runner(command, capture_output=True, text=True, check=False)
        except OSError as e:
            raise ResourceError(f"failed to run {command[0]}: {e}") from e
        if check and result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise ResourceError(
                f"{' '.join(command)} failed with exit code {result.returncode}: {stderr}"
            )
        return result

    def link_exists(self, name: str) -> bool:
        result = self._run([self.ip_bin, "-j", "link", "show", "dev", name], check=False)
        return result.returncode == 0

    def link_add(self, name: str, kind: str, parent: str = "", args: Sequence[str] = ()) -> None:
        command = [self.ip_bin, "link", "add"]
        if parent:
            command += ["link", parent]
        command += ["name", name, "type", kind, *args]
        self._run(command)

    def link_set_up(self, name: str) -> None:
        self._run([self.ip_bin, "link", "set", "dev", name, "up"])

    def link_set_down(self, name: str) -> None:
        self._run([self.ip_bin, "link", "set", "dev", name, "down"])

    def link_set_mtu(self, name: str, mtu: int) -> None:
        self._run([self.ip_bin, "link", "set", "dev", name, "mtu", str(mtu)])

    def link_delete(self, name: str) -> None:
        self._run([self.ip_bin, "link", "delete", "dev", name])

    def rdma_link_exists(self, ibdev: str) -> bool:
        result = self._run([self.rdma_bin, "-j", "dev", "show", ibdev], check=False)
        return result.returncode == 0

    def rdma_set_netns(self, ibdev: str, netns_path: str) -> None:
        # iproute2 treats a netns argument containing "/" as a path to open
        self._run([self.rdma_bin, "dev", "set", ibdev, "netns", netns_path])

    def rdma_netns_mode(self) -> str:
        """
        Return the RDMA subsystem netns mode reported by the kernel.

        Returns:
            "exclusive" or "shared".

        Raises:
            ResourceError: If the command fails or its output cannot be parsed.
        """
        result = self._run([self.rdma_bin, "-j", "system", "show"])
        try:
            data: Any = json.loads(result.stdout or "null")
        except json.JSONDecodeError as e:
            raise ResourceError(f"unexpected output from rdma system show: {e}") from e
        entries = data if isinstance(data, list) else [data]
        for entry in entries:
            if isinstance(entry, dict) and "netns" in entry:
                return str(entry["netns"])
        raise ResourceError("rdma system show did not report a netns mode")
