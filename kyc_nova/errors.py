from typing import Optional


class KycError(Exception):
    """Base class for errors raised by kyc_nova."""


class InvalidInputError(KycError, ValueError):
    """
    Structurally invalid input (missing or undecodable image, oversized payload).
    The only error class meant to reach the end user, as a 400-style response.
    """
    status_code = 400

    def __init__(self, code: str, message: Optional[str] = None):
        self.code = code
        self.message = message or code
        super().__init__(self.message)


class ExternalServiceError(KycError):
    """Malformed or unusable response from a third-party service."""

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(f"{service}: {message}")
