"""String encoding for secret values that are not natively strings."""
import json
from typing import Any, Tuple, Union

SERIALIZED = "1"
PLAIN = "0"


class SecretDecodeError(ValueError):
    """Raised when a value flagged as serialized is not valid JSON."""

    def __init__(self, storage_id: str, reason: str):
        super().__init__(f"Secret '{storage_id}' holds a malformed serialized value: {reason}")
        self.storage_id = storage_id


def encode(value: Any) -> Tuple[str, str]:
    """
    Encode a secret value for storage.

    Returns:
        Tuple of (string payload, serialized flag). Strings pass through
        unchanged with flag "0"; anything else is JSON-encoded with flag "1".
    """
    if isinstance(value, str):
        return value, PLAIN

    return json.dumps(value), SERIALIZED


def decode(value: str, serialized: Union[bool, str], storage_id: str = "") -> Any:
    """Decode a stored payload according to its serialized flag."""
    if serialized in (True, SERIALIZED) and value:
        try:
            return json.loads(value)
        except json.JSONDecodeError as e:
            raise SecretDecodeError(storage_id, str(e)) from e

    return value
