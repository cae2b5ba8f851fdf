import json
from dataclasses import dataclass, field
from typing import Any


@dataclass
class Request:
    method: str
    path: str
    headers: dict[str, str]
    query_params: dict[str, list]
    body: bytes
    version: str
    path_params: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        self._json_error: str | None = None
        if not self.body:
            self._json = None
            return

        try:
            self._json = json.loads(self.body)
        except ValueError as e:
            # JSONDecodeError and UnicodeDecodeError
            self._json = None
            self._json_error = str(e)

    @property
    def json(self) -> Any:
        """Decoded JSON body, or None when the body is empty or invalid."""
        return self._json

    @property
    def json_error(self) -> str | None:
        return self._json_error

    def param(self, name: str) -> str:
        if not name:
            raise ValueError("Parameter name cannot be empty")

        if name not in self.path_params:
            raise KeyError(f"No path parameter named {name!r}")

        return self.path_params[name]
