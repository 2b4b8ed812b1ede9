"""
SupportDesk Errors

Every failure a caller can see falls into one of four kinds. All are terminal
for the request that raised them; nothing in this package retries.
"""


class SupportDeskError(Exception):
    """Base for all domain errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SupportDeskError):
    """Malformed or missing input. Shown to the caller verbatim."""
    pass


class AuthorizationError(SupportDeskError):
    """Actor may not perform the requested transition. Shown as a generic denial."""
    pass


class ConflictError(SupportDeskError):
    """State-machine guard violated. Caller may retry against fresh state."""
    pass


class NotFoundError(SupportDeskError):
    """Referenced entity does not exist."""
    pass


def validation_error_from(exc) -> ValidationError:
    """Collapse a pydantic ValidationError into ours, keeping the first message."""
    errors = exc.errors()
    if not errors:
        return ValidationError(str(exc))
    first = errors[0]
    message = first.get("msg", "Invalid value")
    # pydantic prefixes messages raised from validators
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    field = ".".join(str(part) for part in first.get("loc", ()))
    if field and field not in message.lower():
        message = f"{field}: {message}"
    return ValidationError(message)
