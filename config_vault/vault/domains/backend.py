"""Abstract interface for secret storage backends.

Defines the contract the vault consumes. Every method is a coroutine (or
an async iterator for listings) so remote backends can be awaited
concurrently.
"""
from abc import ABC, abstractmethod
from typing import AsyncIterator

from .models import SecretMetadata, StoredSecret


class SecretBackendError(Exception):
    """Base class for storage state errors."""
    pass


class SecretNotFoundError(SecretBackendError):
    """Raised when a secret does not exist in the state an operation requires."""

    def __init__(self, storage_id: str, state: str = "active"):
        super().__init__(f"No {state} secret named '{storage_id}'")
        self.storage_id = storage_id
        self.state = state


class SecretBackend(ABC):
    """Abstract base class for secret storage implementations."""

    @abstractmethod
    async def set_secret(self, storage_id: str, value: str, metadata: SecretMetadata) -> StoredSecret:
        """Create the secret or add a new version to it.

        Args:
            storage_id: Backend identifier of the secret
            value: String payload
            metadata: Tags stored alongside the value

        Returns:
            The written secret
        """
        pass

    @abstractmethod
    async def get_secret(self, storage_id: str) -> StoredSecret:
        """Get the latest version of an active secret.

        Raises:
            SecretNotFoundError: If the secret is absent or deleted
        """
        pass

    @abstractmethod
    async def delete_secret(self, storage_id: str) -> StoredSecret:
        """Move an active secret to the deleted state.

        Raises:
            SecretNotFoundError: If there is no active secret to delete
        """
        pass

    @abstractmethod
    async def purge_deleted_secret(self, storage_id: str) -> None:
        """Permanently remove a deleted secret.

        Raises:
            SecretNotFoundError: If there is no deleted secret to purge
        """
        pass

    @abstractmethod
    async def recover_deleted_secret(self, storage_id: str) -> StoredSecret:
        """Bring a deleted secret back to the active state.

        Raises:
            SecretNotFoundError: If there is no deleted secret to recover
        """
        pass

    @abstractmethod
    def list_secrets(self) -> AsyncIterator[SecretMetadata]:
        """Iterate the metadata of every active secret."""
        pass

    @abstractmethod
    def list_deleted_secrets(self) -> AsyncIterator[SecretMetadata]:
        """Iterate the metadata of every deleted secret."""
        pass

    @property
    @abstractmethod
    def backend_type(self) -> str:
        """Return the type of backend (e.g., 'gcp', 'memory')."""
        pass
