from .mode import NetnsMode, NetnsModeCache, detect_netns_mode, reset_detected_mode
from .uverbs import UverbsHandler

__all__ = [
    "NetnsMode",
    "NetnsModeCache",
    "UverbsHandler",
    "detect_netns_mode",
    "reset_detected_mode",
]
