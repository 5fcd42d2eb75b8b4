from .roce import RoCEHandler
from .saga import Saga, SagaStep

__all__ = [
    "RoCEHandler",
    "Saga",
    "SagaStep",
]
