from .plugin import PodSandbox, SandboxEventCoordinator, extract_claim_uids
from .tracker import ActiveMove, PendingMove, RelocationTracker

__all__ = [
    "ActiveMove",
    "PendingMove",
    "PodSandbox",
    "RelocationTracker",
    "SandboxEventCoordinator",
    "extract_claim_uids",
]
