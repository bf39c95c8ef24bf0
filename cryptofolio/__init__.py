"""cryptofolio - command-line portfolio tracker for cryptocurrency holdings."""

__version__ = "0.1.0"
