from .once import Once

__all__ = [
    "Once",
]
