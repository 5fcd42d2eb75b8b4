"""
Handler registry.

Maps (device type, kind) to the handler serving it. The registry is filled
once at startup (see ``netdra.driver.bootstrap``) and only read afterwards,
so lookups need no locking.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from netdra.config.logging_config import get_logger
from netdra.handler.errors import HandlerNotFoundError
from netdra.handler.types import DeviceHandler, DeviceType

log = get_logger(__name__)


class HandlerRegistry:
    """Two-level lookup table: device type, then kind."""

    def __init__(self) -> None:
        self._handlers: Dict[DeviceType, Dict[str, DeviceHandler]] = {}

    def register(self, handler: DeviceHandler) -> None:
        """
        Register a handler for every kind it declares.

        A later registration for the same (type, kind) replaces the earlier one.
        """
        by_kind = self._handlers.setdefault(DeviceType(handler.device_type), {})
        for kind in handler.kinds:
            if kind in by_kind:
                log.debug(f"Replacing handler for type={handler.device_type.value} kind={kind}")
            by_kind[kind] = handler

    def get(self, device_type: DeviceType | str, kind: str) -> Optional[DeviceHandler]:
        try:
            device_type = DeviceType(device_type)
        except ValueError:
            return None
        return self._handlers.get(device_type, {}).get(kind)

    def must_get(self, device_type: DeviceType | str, kind: str) -> DeviceHandler:
        """
        Like ``get`` but raises instead of returning None.

        Raises:
            HandlerNotFoundError: If nothing is registered for the pair.
        """
        handler = self.get(device_type, kind)
        if handler is None:
            type_name = device_type.value if isinstance(device_type, DeviceType) else device_type
            raise HandlerNotFoundError(type_name, kind)
        return handler

    def list_registered(self) -> Dict[str, List[str]]:
        """Return ``{type: [kinds]}`` for every registered handler, sorted by kind."""
        return {
            device_type.value: sorted(by_kind)
            for device_type, by_kind in self._handlers.items()
        }
