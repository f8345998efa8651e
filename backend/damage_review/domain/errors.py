class ReviewError(Exception):
    """Base class for damage review failures."""


class NotFound(ReviewError, LookupError):
    """Referenced damage, image, part or session does not exist."""


class InvalidStatus(ReviewError, ValueError):
    """Status value outside the damage status enum."""


class InvalidSeverity(ReviewError, ValueError):
    """Severity outside 0..5."""


class InvalidBoundingBox(ReviewError, ValueError):
    """Box with non-positive or sub-minimum dimensions."""


class StoreUnavailable(ReviewError, ConnectionError):
    """The damage store could not be reached or failed to persist."""


class ConfirmationRequired(ReviewError):
    """A destructive operation was requested without explicit confirmation."""

    def __init__(self, action: str) -> None:
        super().__init__(f"'{action}' requires explicit confirmation")
        self.action = action
