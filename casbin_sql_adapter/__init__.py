from .adapter import Adapter
from .core.exceptions import (
    AdapterError,
    ArityError,
    ConstraintViolationError,
    NotFoundError,
    StorageIOError,
)
from .models import CasbinRule, Filter

__all__ = [
    "Adapter",
    "AdapterError",
    "ArityError",
    "CasbinRule",
    "ConstraintViolationError",
    "Filter",
    "NotFoundError",
    "StorageIOError",
]
