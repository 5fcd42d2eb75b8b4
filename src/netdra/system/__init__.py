from .iproute import IPRoute2, LinkOps
from .netns import enter_netns, return_rdma_to_host

__all__ = [
    "IPRoute2",
    "LinkOps",
    "enter_netns",
    "return_rdma_to_host",
]
