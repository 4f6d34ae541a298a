"""Guardr: consent-dialog denial engine."""

__version__ = "0.3.0"
