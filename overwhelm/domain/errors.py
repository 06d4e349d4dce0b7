"""
Domain errors. Operational failures only; bad input and broken invariants raise ValueError.
"""


class OverwhelmError(Exception):
    """Base class for errors the api layer maps to a response."""


class LocationRequiredError(OverwhelmError):
    """Coordinates are mandated by policy but the participant sent none."""

    def __init__(self, message: str = "Location required for crew assignment"):
        super().__init__(message)


class OutOfRangeError(OverwhelmError):
    """Participant is not within walking distance of any active zone."""

    def __init__(self, message: str = "You must be within walking distance of an active zone"):
        super().__init__(message)


class NoSafeZoneError(OverwhelmError):
    """No non-critical target zone exists. Rotation degrades instead of failing."""


class NoAssignableCrewError(OverwhelmError):
    """No crew can take the participant and no crew can be created."""


class StoreUnavailableError(OverwhelmError):
    """A read or write against the external store failed."""
