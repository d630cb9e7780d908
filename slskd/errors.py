class SlskdError(Exception):
    """Base class for slskd backend failures."""


class BackendUnavailableError(SlskdError):
    """Transport failure or an unexpected HTTP status."""

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(SlskdError):
    """The backend answered with a payload that cannot be understood."""
