"""Cart pricing and checkout settlement for the storefront client."""

__version__ = "1.0.0"
