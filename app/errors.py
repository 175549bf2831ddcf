class CheckoutError(Exception):
    """Request-level failure that aborts a checkout before any provider call."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CheckoutError):
    status_code = 400


class ConfigError(CheckoutError):
    status_code = 500
