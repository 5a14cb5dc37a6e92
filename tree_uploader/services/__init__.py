"""Service adapters for the file server's single-verb endpoints."""
from .remote import RemoteDirectoryClient

__all__ = ["RemoteDirectoryClient"]
