"""Exceptions raised by the RGPV connector."""


class RGPVError(Exception):
    """Base class for RGPV connector errors."""
    pass


class TransportError(RGPVError):
    """Raised on network faults, timeouts and unexpected HTTP statuses.

    Attributes:
        url: URL of the failing request, if known.
        status: HTTP status code, if a response was received.
    """

    def __init__(self, message: str, url: str = "", status: int = 0):
        super().__init__(message)
        self.url = url
        self.status = status
