"""Mystery Events ticketing and gift-voucher backend."""

__version__ = "1.0.0"
