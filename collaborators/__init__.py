"""Clients for the remote litigation services."""

from .client import CollaboratorClient, CollaboratorError, get_client

__all__ = ["CollaboratorClient", "CollaboratorError", "get_client"]
