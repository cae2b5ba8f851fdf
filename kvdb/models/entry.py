"""
Entry - a single key/value pair.
"""

from dataclasses import dataclass
from typing import Any

from kvdb.models.exceptions import MalformedRequestError


@dataclass(frozen=True)
class Entry:
    """
    A key/value pair as stored and as exchanged over HTTP.

    Attributes:
        key: Unique key within the store.
        value: Stored value.
    """

    key: str
    value: str

    def to_dict(self) -> dict[str, str]:
        return {"key": self.key, "value": self.value}

    @classmethod
    def from_payload(cls, payload: Any) -> "Entry":
        """
        Build an entry from a decoded JSON request body.

        Args:
            payload: Decoded JSON, expected to be {"key": str, "value": str}.

        Returns:
            The parsed Entry.

        Raises:
            MalformedRequestError: If the payload does not have that shape.
        """
        if not isinstance(payload, dict):
            raise MalformedRequestError("Request body must be a JSON object")

        key = payload.get("key")
        value = payload.get("value")

        if key is None or value is None:
            raise MalformedRequestError("Missing 'key' or 'value' in request body")

        if not isinstance(key, str) or not isinstance(value, str):
            raise MalformedRequestError("'key' and 'value' must be strings")

        return cls(key=key, value=value)
