"""
Error types raised by lesnek.

Every error aborts the whole certificate run; callers catch ``Error`` to
handle them all.
"""


class Error(Exception):
    """Generic lesnek error."""


class ConfigurationError(Error):
    """Configuration is invalid or a required directory cannot be created."""


class ProtocolError(Error):
    """The ACME server answered with something we cannot continue from."""

    def __init__(self, message: str, status_code=None, body=None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class TransportError(ProtocolError):
    """The ACME server could not be reached."""


class CryptoError(Error):
    """Key, signature or CSR handling failed."""


class VerificationError(Error):
    """The published challenge token could not be fetched back unchanged."""


class PollTimeoutError(Error):
    """A polling loop ran out of attempts or time."""
