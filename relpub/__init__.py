"""relpub: publish matrix build artifacts to a versioned release."""

__version__ = "0.1.0"
