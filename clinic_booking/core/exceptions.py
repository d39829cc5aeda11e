"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class BadRequestException(AppException):
    """Bad request exception."""

    def __init__(self, message: str = "Bad request"):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400)


class ConflictException(AppException):
    """Conflict exception."""

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class InvalidSlotException(BadRequestException):
    """Requested time is not a bookable slot."""

    def __init__(
        self,
        message: str = (
            "Invalid time slot. Must be a Saturday at 09:00, 11:00, 13:00, 15:00 or 17:00, "
            "not a holiday, and in the future."
        ),
    ):
        super().__init__(message)


class ConsentRequiredException(BadRequestException):
    """Patient has not given consent for data processing."""

    def __init__(
        self,
        message: str = (
            "Patient has not given consent for data processing. Cannot book appointment."
        ),
    ):
        super().__init__(message)


class SlotConflictException(ConflictException):
    """Slot is already held by another active appointment."""

    def __init__(self, message: str = "Slot already booked. Please choose another time."):
        super().__init__(message)


class ConcurrentModificationException(ConflictException):
    """Appointment changed between read and write."""

    def __init__(self, message: str = "Appointment was modified concurrently. Please retry."):
        super().__init__(message)


class InvalidTransitionException(BadRequestException):
    """Status change not permitted by the appointment lifecycle."""

    def __init__(self, message: str = "Invalid status transition"):
        super().__init__(message)


class CancellationWindowException(BadRequestException):
    """Cancellation requested inside the protected window."""

    def __init__(self, message: str = "Cannot cancel appointment within the cancellation window"):
        super().__init__(message)
