"""Command line interface for cryptofolio."""
