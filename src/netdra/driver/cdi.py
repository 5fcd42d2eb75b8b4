"""
Durable per-claim state.

Every prepared claim owns two files in the CDI directory, both named from
the driver name and the first eight characters of the claim UID:

- ``<prefix>.json``: the CDI spec the container runtime reads
- ``<prefix>.alloc.json``: the ``AllocationInfo`` sidecar used to undo the
  allocation after a restart

Both are written to a temporary file first and then renamed into place.
"""

import json
from pathlib import Path
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from netdra.config.logging_config import get_logger
from netdra.handler.errors import PersistenceError
from netdra.handler.types import AllocationInfo, ContainerEdits, DeviceType

log = get_logger(__name__)

CDI_VERSION = "1.1.0"
SPEC_SUFFIX = ".json"
ALLOCATION_SUFFIX = ".alloc.json"


class CDIDevice(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    container_edits: ContainerEdits = Field(default_factory=ContainerEdits, alias="containerEdits")


class CDISpec(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    cdi_version: str = Field(CDI_VERSION, alias="cdiVersion")
    kind: str
    devices: List[CDIDevice] = Field(default_factory=list)


def _atomic_write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_name(path.name + ".tmp")
    try:
        temp_path.write_text(content)
        temp_path.replace(path)
    except Exception:
        if temp_path.exists():
            temp_path.unlink()
        raise


class CDIStore:
    """Reads and writes the CDI spec and allocation sidecar for each claim."""

    def __init__(self, cdi_dir: Path, driver_name: str):
        self.cdi_dir = Path(cdi_dir)
        self.driver_name = driver_name

    @property
    def driver_prefix(self) -> str:
        return self.driver_name.replace("/", "-")

    def file_prefix(self, claim_uid: str) -> str:
        return f"{self.driver_prefix}-{claim_uid[:8]}"

    def spec_path(self, claim_uid: str) -> Path:
        return self.cdi_dir / f"{self.file_prefix(claim_uid)}{SPEC_SUFFIX}"

    def allocation_path(self, claim_uid: str) -> Path:
        return self.cdi_dir / f"{self.file_prefix(claim_uid)}{ALLOCATION_SUFFIX}"

    def cdi_kind(self, device_type: DeviceType) -> str:
        return f"{self.driver_name}/{DeviceType(device_type).value}"

    def cdi_device_id(self, device_type: DeviceType, device_name: str) -> str:
        """Fully qualified CDI device name, ``<driver>/<type>=<device>``."""
        return f"{self.cdi_kind(device_type)}={device_name}"

    def write_spec(
        self,
        claim_uid: str,
        device_type: DeviceType,
        device_name: str,
        edits: ContainerEdits,
    ) -> str:
        """
        Write the CDI spec for a claim and return its CDI device id.

        Raises:
            PersistenceError: If the spec cannot be written.
        """
        spec = CDISpec(
            kind=self.cdi_kind(device_type),
            devices=[CDIDevice(name=device_name, container_edits=edits)],
        )
        path = self.spec_path(claim_uid)
        try:
            _atomic_write(path, spec.model_dump_json(by_alias=True, indent=2))
        except OSError as e:
            raise PersistenceError(f"write CDI spec {path}: {e}") from e
        log.debug(f"Wrote CDI spec {path}")
        return self.cdi_device_id(device_type, device_name)

    def save_allocation(self, allocation: AllocationInfo) -> None:
        """
        Raises:
            PersistenceError: If the sidecar cannot be written.
        """
        path = self.allocation_path(allocation.claim_uid)
        try:
            _atomic_write(path, allocation.model_dump_json(by_alias=True, indent=2))
        except OSError as e:
            raise PersistenceError(f"write allocation state {path}: {e}") from e

    def remove_spec(self, claim_uid: str) -> None:
        self._unlink(self.spec_path(claim_uid))

    def remove(self, claim_uid: str) -> None:
        """Delete both files of a claim. Missing files are ignored."""
        self._unlink(self.spec_path(claim_uid))
        self._unlink(self.allocation_path(claim_uid))

    def _unlink(self, path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"remove {path}: {e}") from e

    def load_allocations(self) -> Dict[str, AllocationInfo]:
        """
        Read every allocation sidecar of this driver.

        Files that cannot be read or parsed, or that carry no claim UID, are
        skipped with a warning.
        """
        allocations: Dict[str, AllocationInfo] = {}
        if not self.cdi_dir.is_dir():
            return allocations

        for path in sorted(self.cdi_dir.glob(f"{self.driver_prefix}-*{ALLOCATION_SUFFIX}")):
            try:
                data = json.loads(path.read_text())
                allocation = AllocationInfo.model_validate(data)
            except (OSError, json.JSONDecodeError, ValidationError) as e:
                log.warning(f"Skipping unreadable allocation state {path}: {e}")
                continue
            if not allocation.claim_uid:
                log.warning(f"Skipping allocation state {path}: empty claim UID")
                continue
            allocations[allocation.claim_uid] = allocation
        return allocations
