"""Shared repository layer for the dashboard backend."""

from .credential import CredentialRepository

__all__ = [
    "CredentialRepository",
]
