class AdapterError(Exception):
    pass


class ArityError(AdapterError, ValueError):
    """A rule has more fields than the table can hold, or no usable ptype."""


class ConstraintViolationError(AdapterError):
    """An insert collided with the unique (ptype, v0..v5) key."""


class NotFoundError(AdapterError):
    """A statement inside a batch did not affect exactly one row."""


class StorageIOError(AdapterError):
    """Connection, driver or DDL failure."""
