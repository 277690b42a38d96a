"""Namespaced vault over a secret backend.

Secrets are grouped by project, group and environment. Nested
configuration trees are flattened into one secret per leaf, and keys whose
segment starts with ``$`` are shared by every group of the same project and
environment.
"""
import asyncio
import logging
from typing import Any, AsyncIterator, Dict, List, Union

from ..domains.backend import SecretBackend, SecretBackendError
from ..domains.config_loader import VaultSettings
from ..domains.models import Namespace, OperationFailure, SecretMetadata, StoredSecret
from ..domains.naming import SHARED_SIGIL, KeyPath
from ..domains.tree_codec import LEVEL_SEPARATOR, deflatten, flatten
from ..domains.value_codec import decode, encode

logger = logging.getLogger(__name__)

TransitionResult = Union[StoredSecret, OperationFailure, None]


class ConfigVault:
    """Reads and writes configuration trees for one namespace."""

    def __init__(self, namespace: Namespace, backend: SecretBackend):
        self.namespace = namespace
        self.backend = backend

    @classmethod
    def from_settings(cls, settings: VaultSettings) -> "ConfigVault":
        """Build a vault backed by GCP Secret Manager."""
        from ..domains.gcp_client import GCPSecretBackend

        credentials = settings.credentials
        backend = GCPSecretBackend(credentials.project_id, credentials=credentials.load())
        return cls(settings.namespace, backend)

    def secret_name(self, key: str) -> str:
        """Backend storage id of a logical key."""
        return KeyPath.parse(key).storage_id(self.namespace)

    # single secret operations

    async def get(self, key: str, serialized: bool = False) -> Any:
        """
        Fetch and decode a single secret.

        Args:
            key: Logical key, e.g. ``"db:user"`` or ``"db:$password"``
            serialized: Decode as JSON when the stored secret carries no flag

        Returns:
            Decoded value, or None when the secret doesn't exist

        Raises:
            SecretDecodeError: If a serialized value is not valid JSON
        """
        storage_id = self.secret_name(key)
        try:
            secret = await self.backend.get_secret(storage_id)
        except SecretBackendError:
            logger.debug(f"Secret '{storage_id}' not found")
            return None

        flag = secret.metadata.serialized if secret.metadata.serialized else serialized
        return decode(secret.value, flag, storage_id)

    async def get_info(self, key: str) -> StoredSecret:
        """Fetch the raw stored secret; absence raises SecretNotFoundError."""
        return await self.backend.get_secret(self.secret_name(key))

    async def set(self, key: str, value: Any) -> StoredSecret:
        """
        Insert or update a secret.

        Non-string values are JSON-encoded and flagged as serialized.
        """
        path = KeyPath.parse(key)
        payload, serialized = encode(value)
        namespace = self.namespace

        metadata = SecretMetadata(
            name=path.name,
            path=path.parent,
            project=namespace.project,
            environment=namespace.env or "",
            group=(namespace.shared_group if path.shared else namespace.group) or "",
            serialized=serialized,
        )
        return await self.backend.set_secret(path.storage_id(namespace), payload, metadata)

    async def delete(self, key: str) -> TransitionResult:
        """Soft-delete a secret; returns an OperationFailure if there was nothing to delete."""
        return await self._transition(key, "delete", self.backend.delete_secret)

    async def purge(self, key: str) -> TransitionResult:
        """Permanently remove a deleted secret."""
        return await self._transition(key, "purge", self.backend.purge_deleted_secret)

    async def restore(self, key: str) -> TransitionResult:
        """Bring a deleted secret back."""
        return await self._transition(key, "restore", self.backend.recover_deleted_secret)

    async def _transition(self, key: str, operation: str, action) -> TransitionResult:
        storage_id = self.secret_name(key)
        try:
            return await action(storage_id)
        except SecretBackendError as e:
            logger.debug(f"Could not {operation} '{storage_id}': {e}")
            return OperationFailure(key=key, message=str(e), details={"operation": operation})

    # bulk operations

    async def get_all(self) -> Dict[str, Any]:
        """
        Fetch every secret of the namespace, shared ones included.

        Iterates over every secret in the backend, so this may be slow.
        Prefer get_for() when the expected keys are known.

        Returns:
            Nested configuration tree
        """
        secrets: Dict[str, Any] = {}

        async for metadata in self._matching(self.backend.list_secrets(), include_shared=True):
            key = self._flat_key(metadata)
            try:
                secrets[key] = await self.get(key, metadata.is_serialized)
            except Exception as e:
                logger.warning(f"Skipping secret '{key}': {e}")

        logger.info(f"Fetched {len(secrets)} secrets for '{self.namespace.scoped_prefix}'")
        return deflatten(secrets)

    async def get_for(self, defaults: Dict[str, Any], override: bool = False) -> Dict[str, Any]:
        """
        Resolve the secrets named by a tree of defaults.

        Without override, only empty defaults (None, "", 0, False, []) are
        looked up remotely; other defaults are kept as they are. With
        override, every key is looked up and the remote value wins. A key
        that is missing or fails falls back to its default. Use [] as
        default to get a list deserialized.

        Args:
            defaults: Nested tree of keys with default values
            override: Whether remote values replace non-empty defaults

        Returns:
            Nested tree shaped like ``defaults``
        """
        flat = flatten(defaults)
        pending = {
            key: self.get(key, isinstance(default, list))
            for key, default in flat.items()
            if override or not default
        }

        results = await asyncio.gather(*pending.values(), return_exceptions=True)

        for key, value in zip(pending, results):
            if isinstance(value, BaseException):
                logger.warning(f"Falling back to default for '{key}': {value}")
            elif value is not None:
                flat[key] = value

        return deflatten(flat)

    async def set_all(self, secrets: Dict[str, Any]) -> List[StoredSecret]:
        """
        Insert or update every leaf of a nested tree, one write at a time.

        The first failing write aborts the rest; earlier writes are kept.
        """
        results = []

        for key, value in flatten(secrets).items():
            results.append(await self.set(key, value))

        logger.info(f"Published {len(results)} secrets for '{self.namespace.scoped_prefix}'")
        return results

    async def delete_all(self, skip_shared: bool = True) -> List[TransitionResult]:
        """Soft-delete every secret of the namespace group."""
        return await self._bulk(self.backend.list_secrets(), self.delete, skip_shared)

    async def purge_all(self, skip_shared: bool = True) -> List[TransitionResult]:
        """Purge every deleted secret of the namespace group."""
        return await self._bulk(self.backend.list_deleted_secrets(), self.purge, skip_shared)

    async def restore_all(self, skip_shared: bool = True) -> List[TransitionResult]:
        """Restore every deleted secret of the namespace group."""
        return await self._bulk(self.backend.list_deleted_secrets(), self.restore, skip_shared)

    async def _bulk(self, listing: AsyncIterator[SecretMetadata], action,
                    skip_shared: bool) -> List[TransitionResult]:
        results = []

        async for metadata in self._matching(listing, include_shared=not skip_shared):
            key = self._flat_key(metadata)
            try:
                results.append(await action(key))
            except Exception as e:
                logger.warning(f"Bulk {action.__name__} failed for '{key}': {e}")
                results.append(OperationFailure(key=key, message=str(e)))

        logger.info(f"Bulk {action.__name__} touched {len(results)} secrets")
        return results

    async def _matching(self, listing: AsyncIterator[SecretMetadata],
                        include_shared: bool) -> AsyncIterator[SecretMetadata]:
        namespace = self.namespace
        project, env, group = (
            (part or "").lower() for part in (namespace.project, namespace.env, namespace.group)
        )
        async for metadata in listing:
            if metadata.project.lower() != project or metadata.environment.lower() != env:
                continue

            if metadata.group == namespace.shared_group:
                if include_shared:
                    yield metadata
            elif metadata.group.lower() == group:
                yield metadata

    def _flat_key(self, metadata: SecretMetadata) -> str:
        """Rebuild the flat key of a listed secret, sigil included for shared ones."""
        segments = metadata.path.split(LEVEL_SEPARATOR) if metadata.path else []
        name = metadata.name
        shared = metadata.group == self.namespace.shared_group
        if shared and not any(segment.startswith(SHARED_SIGIL) for segment in segments):
            name = SHARED_SIGIL + name

        return LEVEL_SEPARATOR.join(segments + [name])
