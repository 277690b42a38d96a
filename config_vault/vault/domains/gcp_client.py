"""GCP Secret Manager backend."""
import logging
from typing import AsyncIterator, Dict, Optional

from google.api_core import exceptions as google_exceptions
from google.cloud import secretmanager

from .backend import SecretBackend, SecretNotFoundError
from .models import SecretMetadata, StoredSecret

logger = logging.getLogger(__name__)

# Secret Manager has no soft delete; the lifecycle lives in this label.
STATE_LABEL = "state"
DELETED_STATE = "deleted"


class GCPSecretBackend(SecretBackend):
    """Secret backend over the Secret Manager async client.

    Metadata tags are kept as secret annotations, values as secret versions.
    """

    def __init__(self, project_id: str, credentials=None, client=None):
        """
        Args:
            project_id: GCP project holding the secrets
            credentials: google.auth credentials; application default credentials when None
            client: Preconfigured SecretManagerServiceAsyncClient (tests)
        """
        self.project_id = project_id
        self._credentials = credentials
        self._client = client

    @property
    def backend_type(self) -> str:
        return "gcp"

    @property
    def client(self) -> secretmanager.SecretManagerServiceAsyncClient:
        """Lazy-initialize client."""
        if self._client is None:
            self._client = secretmanager.SecretManagerServiceAsyncClient(credentials=self._credentials)
            logger.debug(f"Secret Manager client initialized for project: {self.project_id}")
        return self._client

    @property
    def parent(self) -> str:
        return f"projects/{self.project_id}"

    def secret_path(self, storage_id: str) -> str:
        return f"{self.parent}/secrets/{storage_id}"

    async def set_secret(self, storage_id: str, value: str, metadata: SecretMetadata) -> StoredSecret:
        name = self.secret_path(storage_id)
        annotations = metadata.to_tags()

        try:
            secret = await self.client.get_secret(request={"name": name})
        except google_exceptions.NotFound:
            await self.client.create_secret(
                request={
                    "parent": self.parent,
                    "secret_id": storage_id,
                    "secret": {
                        "replication": {"automatic": {}},
                        "annotations": annotations,
                    },
                }
            )
            logger.debug(f"Created new secret '{storage_id}'")
        else:
            labels = dict(secret.labels)
            labels.pop(STATE_LABEL, None)
            await self._update(name, annotations=annotations, labels=labels)

        version = await self.client.add_secret_version(
            request={"parent": name, "payload": {"data": value.encode("UTF-8")}}
        )
        logger.debug(f"Secret '{storage_id}' set successfully")

        return StoredSecret(
            storage_id=storage_id,
            value=value,
            metadata=SecretMetadata.from_tags(annotations),
            version=version.name.split("/")[-1],
        )

    async def get_secret(self, storage_id: str) -> StoredSecret:
        secret = await self._fetch(storage_id, deleted=False)

        try:
            response = await self.client.access_secret_version(
                request={"name": f"{secret.name}/versions/latest"}
            )
        except google_exceptions.NotFound as e:
            raise SecretNotFoundError(storage_id) from e

        return StoredSecret(
            storage_id=storage_id,
            value=response.payload.data.decode("UTF-8"),
            metadata=SecretMetadata.from_tags(dict(secret.annotations)),
            version=response.name.split("/")[-1],
        )

    async def delete_secret(self, storage_id: str) -> StoredSecret:
        secret = await self._fetch(storage_id, deleted=False)
        labels = dict(secret.labels)
        labels[STATE_LABEL] = DELETED_STATE
        await self._update(secret.name, labels=labels)

        logger.debug(f"Secret '{storage_id}' marked as deleted")
        return self._to_stored(storage_id, secret, deleted=True)

    async def purge_deleted_secret(self, storage_id: str) -> None:
        secret = await self._fetch(storage_id, deleted=True)
        await self.client.delete_secret(request={"name": secret.name})
        logger.debug(f"Secret '{storage_id}' purged")

    async def recover_deleted_secret(self, storage_id: str) -> StoredSecret:
        secret = await self._fetch(storage_id, deleted=True)
        labels = dict(secret.labels)
        labels.pop(STATE_LABEL, None)
        await self._update(secret.name, labels=labels)

        logger.debug(f"Secret '{storage_id}' recovered")
        return self._to_stored(storage_id, secret, deleted=False)

    async def list_secrets(self) -> AsyncIterator[SecretMetadata]:
        async for secret in self._list(deleted=False):
            yield secret

    async def list_deleted_secrets(self) -> AsyncIterator[SecretMetadata]:
        async for secret in self._list(deleted=True):
            yield secret

    async def _list(self, deleted: bool) -> AsyncIterator[SecretMetadata]:
        pager = await self.client.list_secrets(request={"parent": self.parent})
        async for secret in pager:
            if self._is_deleted(secret) == deleted:
                yield SecretMetadata.from_tags(dict(secret.annotations))

    async def _fetch(self, storage_id: str, deleted: bool):
        try:
            secret = await self.client.get_secret(request={"name": self.secret_path(storage_id)})
        except google_exceptions.NotFound as e:
            raise SecretNotFoundError(storage_id, "deleted" if deleted else "active") from e

        if self._is_deleted(secret) != deleted:
            raise SecretNotFoundError(storage_id, "deleted" if deleted else "active")
        return secret

    async def _update(self, name: str, annotations: Optional[Dict[str, str]] = None,
                      labels: Optional[Dict[str, str]] = None) -> None:
        secret = {"name": name}
        paths = []
        if annotations is not None:
            secret["annotations"] = annotations
            paths.append("annotations")
        if labels is not None:
            secret["labels"] = labels
            paths.append("labels")

        await self.client.update_secret(
            request={"secret": secret, "update_mask": {"paths": paths}}
        )

    @staticmethod
    def _is_deleted(secret) -> bool:
        return secret.labels.get(STATE_LABEL) == DELETED_STATE

    @staticmethod
    def _to_stored(storage_id: str, secret, deleted: bool) -> StoredSecret:
        # Value is not fetched for state transitions.
        return StoredSecret(
            storage_id=storage_id,
            value="",
            metadata=SecretMetadata.from_tags(dict(secret.annotations)),
            deleted=deleted,
        )
