"""Certificate expiry and wallet balance monitoring."""

__version__ = "0.1.0"
