"""Secret naming: logical keys to backend storage ids.

Logical keys use ``:`` (or the flattened ``--``) between levels and a
leading ``$`` on a segment to mark the secret as shared by every group of
the same project and environment, e.g. ``db:$password``.
"""
import re
from dataclasses import dataclass
from typing import Tuple

from .models import Namespace
from .tree_codec import LEVEL_SEPARATOR

SHARED_SIGIL = "$"

_SEGMENT_SPLIT = re.compile(r":|--")
_BLANKS = re.compile(r"[_ ]+")


@dataclass(frozen=True)
class KeyPath:
    """A logical key parsed once at the API boundary."""
    raw: str
    segments: Tuple[str, ...]
    shared: bool

    @classmethod
    def parse(cls, key: str) -> "KeyPath":
        segments = tuple(_SEGMENT_SPLIT.split(key))
        shared = any(segment.startswith(SHARED_SIGIL) for segment in segments)
        return cls(raw=key, segments=segments, shared=shared)

    @property
    def name(self) -> str:
        """Last segment without its sharing sigil."""
        return self.segments[-1].lstrip(SHARED_SIGIL)

    @property
    def parent(self) -> str:
        """Ancestor segments joined with ``--``."""
        return LEVEL_SEPARATOR.join(self.segments[:-1])

    @property
    def flat_key(self) -> str:
        return LEVEL_SEPARATOR.join(self.segments)

    def storage_id(self, namespace: Namespace) -> str:
        prefix = namespace.shared_prefix if self.shared else namespace.scoped_prefix
        secret_name = _BLANKS.sub("-", f"{prefix}-{self.flat_key}")

        return secret_name.replace(SHARED_SIGIL, "").lower()


def is_shared(key: str) -> bool:
    return KeyPath.parse(key).shared


def storage_id(key: str, namespace: Namespace) -> str:
    """
    Compute the backend identifier of a logical key.

    Examples:
        ``"k"`` under project ``p``, group ``g``, env ``e`` -> ``"p-g-e-k"``
        ``"db:$pass"`` under the same namespace -> ``"p-e-db--pass"``
    """
    return KeyPath.parse(key).storage_id(namespace)
