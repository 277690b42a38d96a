"""Domain models for namespaced secret storage."""
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

DEFAULT_SHARED_GROUP = "SHARED"

# '-' joins prefix parts, and '_' and ' ' are stored as '-'
NAMESPACE_PART_PATTERN = r'^[a-zA-Z0-9]+$'


class InvalidNamespaceError(ValueError):
    """Namespace parts that could address another namespace's secrets."""
    pass


@dataclass(frozen=True)
class Namespace:
    """
    Logical partition a vault operates on.

    Project, group and env must be plain letters and digits, and a group
    needs an env. Otherwise ``p/group=g`` and ``p/env=g`` (or ``a-b`` and
    ``a/group=b``) would share storage ids. Parts that differ only in
    letter case name the same namespace.
    """
    project: str
    group: Optional[str] = None
    env: Optional[str] = None
    shared_group: str = DEFAULT_SHARED_GROUP

    def __post_init__(self):
        if not self.project:
            raise InvalidNamespaceError("Namespace project is required")

        for label in ("project", "group", "env"):
            value = getattr(self, label)
            if value and not re.fullmatch(NAMESPACE_PART_PATTERN, value):
                raise InvalidNamespaceError(
                    f"Invalid {label} '{value}': only letters and numbers are allowed"
                )

        if self.group and not self.env:
            raise InvalidNamespaceError(
                f"Group '{self.group}' needs an env; without one its secrets "
                f"would share ids with env '{self.group}'"
            )

        if not self.shared_group:
            raise InvalidNamespaceError("Shared group label can't be empty")

    @property
    def scoped_prefix(self) -> str:
        """project[-group][-env]"""
        return "-".join(part for part in (self.project, self.group, self.env) if part)

    @property
    def shared_prefix(self) -> str:
        """project[-env]"""
        return "-".join(part for part in (self.project, self.env) if part)


@dataclass
class SecretMetadata:
    """Tags persisted next to every secret value."""
    name: str
    path: str = ""
    project: str = ""
    environment: str = ""
    group: str = ""
    serialized: Optional[str] = "0"

    def to_tags(self) -> Dict[str, str]:
        return {
            "name": self.name,
            "path": self.path,
            "project": self.project,
            "environment": self.environment,
            "group": self.group,
            "serialized": self.serialized or "0",
        }

    @classmethod
    def from_tags(cls, tags: Optional[Dict[str, str]]) -> "SecretMetadata":
        tags = tags or {}
        return cls(
            name=tags.get("name", ""),
            path=tags.get("path", ""),
            project=tags.get("project", ""),
            environment=tags.get("environment", ""),
            group=tags.get("group", ""),
            serialized=tags.get("serialized"),
        )

    @property
    def is_serialized(self) -> bool:
        return self.serialized == "1"


@dataclass
class StoredSecret:
    """A secret as held by the storage backend."""
    storage_id: str
    value: str
    metadata: SecretMetadata
    version: Optional[str] = None
    deleted: bool = False


@dataclass
class OperationFailure:
    """Soft failure returned by state transitions that did not apply."""
    key: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
