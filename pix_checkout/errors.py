class CheckoutError(Exception):
    """Base class for failures scoped to one checkout or admin action."""


class ValidationError(CheckoutError):
    """Intent data rejected before any network call."""


class ConfigurationError(CheckoutError):
    """The gateway API key is missing."""


class NotFoundError(CheckoutError):
    """No payment intent with the requested id."""


class GatewayBusinessError(CheckoutError):
    """The gateway answered with ``success: false``."""

    def __init__(self, message: str, envelope=None):
        super().__init__(message)
        self.message = message
        self.envelope = envelope


class TransportError(CheckoutError):
    """No usable response was received from the gateway."""
