"""TribeLab Stage community platform API."""

__version__ = "0.1.0"
