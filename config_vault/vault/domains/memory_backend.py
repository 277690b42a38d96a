"""In-process secret backend.

Keeps secrets in a dict with the same lifecycle as the remote backend:
active -> deleted -> purged | active. Used by the test suite and handy for
local experiments.
"""
import logging
from dataclasses import replace
from typing import AsyncIterator, Dict

from .backend import SecretBackend, SecretNotFoundError
from .models import SecretMetadata, StoredSecret

logger = logging.getLogger(__name__)


class InMemorySecretBackend(SecretBackend):
    """Secret backend held in memory, one instance per simulated store."""

    def __init__(self):
        self._secrets: Dict[str, StoredSecret] = {}

    @property
    def backend_type(self) -> str:
        return "memory"

    async def set_secret(self, storage_id: str, value: str, metadata: SecretMetadata) -> StoredSecret:
        current = self._secrets.get(storage_id)
        version = int(current.version) + 1 if current else 1

        secret = StoredSecret(
            storage_id=storage_id,
            value=value,
            metadata=SecretMetadata.from_tags(metadata.to_tags()),
            version=str(version),
        )
        self._secrets[storage_id] = secret
        logger.debug(f"Stored version {version} of '{storage_id}'")
        return replace(secret)

    async def get_secret(self, storage_id: str) -> StoredSecret:
        return replace(self._require(storage_id, deleted=False))

    async def delete_secret(self, storage_id: str) -> StoredSecret:
        secret = self._require(storage_id, deleted=False)
        secret.deleted = True
        return replace(secret)

    async def purge_deleted_secret(self, storage_id: str) -> None:
        self._require(storage_id, deleted=True)
        del self._secrets[storage_id]

    async def recover_deleted_secret(self, storage_id: str) -> StoredSecret:
        secret = self._require(storage_id, deleted=True)
        secret.deleted = False
        return replace(secret)

    async def list_secrets(self) -> AsyncIterator[SecretMetadata]:
        # snapshot, callers delete while iterating
        for secret in list(self._secrets.values()):
            if not secret.deleted:
                yield secret.metadata

    async def list_deleted_secrets(self) -> AsyncIterator[SecretMetadata]:
        for secret in list(self._secrets.values()):
            if secret.deleted:
                yield secret.metadata

    def _require(self, storage_id: str, deleted: bool) -> StoredSecret:
        secret = self._secrets.get(storage_id)
        if secret is None or secret.deleted != deleted:
            raise SecretNotFoundError(storage_id, "deleted" if deleted else "active")
        return secret
