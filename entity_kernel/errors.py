"""Errors raised by the entity store when a read or lookup cannot be served."""


class EntityStoreError(Exception):
    """Base class for entity store failures."""
    pass


class EmptyStoreError(EntityStoreError):
    """Raised by a lookup against a branch holding no entities."""
    pass


class EntityNotFoundError(EntityStoreError, LookupError):
    """Raised when no entity satisfies a lookup."""
    pass


class IndexOutOfRangeError(EntityStoreError, IndexError):
    """Raised by positional access outside of a QuerySet's bounds."""
    pass


class ProvisionalEntityError(EntityStoreError):
    """Raised when writing through an entity whose id is not allocated yet."""
    pass
