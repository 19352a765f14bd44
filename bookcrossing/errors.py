"""
Domain Errors

Exceptions raised by the services layer and turned into JSON responses by
the handlers registered in bookcrossing.main. Every failure response has
the shape {"error": "<message>"}.
"""


class BookcrossingError(Exception):
    """Base class for errors that map to a fixed HTTP status."""

    status_code: int = 500
    default_message: str = "An internal error occurred."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundOrUnauthorized(BookcrossingError):
    """
    A conditional update matched no row.

    The row may not exist, or the caller may lack the role the update
    requires; the two cases are indistinguishable and both answer 404.
    """

    status_code = 404
    default_message = "Not found or unauthorized"


class VerifierUnavailableError(BookcrossingError):
    """The identity service could not be reached to validate a token."""

    status_code = 503
    default_message = "Authentication service unavailable"
