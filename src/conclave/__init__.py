"""Conclave: end-to-end encrypted conversation backend."""

__version__ = "0.1.0"
