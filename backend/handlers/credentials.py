"""Credential lookup for integration handlers.

Credential storage and OAuth refresh live outside the engine. Handlers
only see this provider interface, injected at registry construction.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class CredentialProvider(ABC):
    """Source of decrypted integration credentials."""

    @abstractmethod
    async def get_credentials(self, integration_id: str) -> Optional[Dict[str, Any]]:
        """Return the credentials for an integration, or None if unknown."""


class InMemoryCredentialProvider(CredentialProvider):
    """Credentials held in a plain dict, keyed by integration id."""

    def __init__(self, credentials: Optional[Dict[str, Dict[str, Any]]] = None):
        self._credentials: Dict[str, Dict[str, Any]] = dict(credentials or {})

    def set(self, integration_id: str, credentials: Dict[str, Any]) -> None:
        self._credentials[integration_id] = dict(credentials)

    async def get_credentials(self, integration_id: str) -> Optional[Dict[str, Any]]:
        credentials = self._credentials.get(integration_id)
        return dict(credentials) if credentials is not None else None
