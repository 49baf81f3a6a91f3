"""
JSON Patch value objects.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List


class PatchOp(str, Enum):
    ADD = "add"
    REMOVE = "remove"
    REPLACE = "replace"


@dataclass(frozen=True)
class PatchOperation:
    """A single JSON Patch operation."""
    op: PatchOp
    path: str
    value: Any = None

    def __post_init__(self):
        if not self.path.startswith("/"):
            raise ValueError(f"Patch path must start with '/': {self.path!r}")

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"op": self.op.value, "path": self.path}
        if self.op != PatchOp.REMOVE:
            data["value"] = self.value
        return data


class PatchDocument(list):
    """Ordered sequence of patch operations. Order is preserved on the wire."""

    def to_json(self) -> List[Dict[str, Any]]:
        return [operation.to_dict() for operation in self]

    def paths(self) -> List[str]:
        return [operation.path for operation in self]

    def find(self, path: str) -> "PatchOperation":
        """Return the first operation targeting ``path``.

        Raises:
            KeyError: If no operation targets the path
        """
        for operation in self:
            if operation.path == path:
                return operation
        raise KeyError(path)
