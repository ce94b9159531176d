from __future__ import annotations


class RotationError(Exception):
    """Base class for everything the rotation engine raises."""


class InvalidArgument(RotationError, ValueError):
    pass


class CatalogUnavailable(RotationError):
    pass


class StateUnavailable(RotationError):
    pass


class RotationConflict(StateUnavailable):
    """Rotation record changed between our read and our write."""
