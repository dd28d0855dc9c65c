"""Error types raised by the domain logic and collaborators."""

from .constants import ErrorKind


class UnscrollError(Exception):
    """Base class for expected application errors."""

    kind = ErrorKind.FAILURE

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(UnscrollError):
    """Item missing or not owned by the caller."""

    kind = ErrorKind.NOT_FOUND


class InvalidStateError(UnscrollError):
    """Precondition on the current status/counts not met."""

    kind = ErrorKind.INVALID_STATE


class OutOfRangeError(UnscrollError):
    """Invalid index into a list field."""

    kind = ErrorKind.OUT_OF_RANGE


class ProviderUnavailableError(UnscrollError):
    """External metadata/text provider failed or returned nothing usable."""

    kind = ErrorKind.PROVIDER_UNAVAILABLE


class UnauthenticatedError(UnscrollError):
    """No valid session."""

    kind = ErrorKind.UNAUTHENTICATED


class InvalidInputError(UnscrollError):
    """Input failed validation."""

    kind = ErrorKind.INVALID_INPUT
