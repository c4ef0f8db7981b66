"""Compras Angostura storefront and back-office client."""

__version__ = "0.1.0"
