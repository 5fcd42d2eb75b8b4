from .base import CreatedLinkHandler, NetdevHandler
from .dummy import DummyHandler
from .host_device import HostDeviceHandler
from .ipoib import IpoibHandler
from .ipvlan import IpvlanHandler
from .macvlan import MacvlanHandler
from .sriov import SriovVfHandler
from .veth import VethHandler

__all__ = [
    "CreatedLinkHandler",
    "DummyHandler",
    "HostDeviceHandler",
    "IpoibHandler",
    "IpvlanHandler",
    "MacvlanHandler",
    "NetdevHandler",
    "SriovVfHandler",
    "VethHandler",
]
