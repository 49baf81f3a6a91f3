"""
Classification node service - areas and iterations of a project.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional

from core.domain.credentials import Credentials
from core.domain.errors import ValidationError
from core.interfaces.repository import IClassificationNodeRepository
from core.services.request_builder import build_update_node, node_body_from_patch

logger = logging.getLogger(__name__)

STRUCTURE_GROUPS = ("areas", "iterations")

# Root segment names as they appear in a node's "path" property
_ROOT_SEGMENTS = {"areas": "area", "iterations": "iteration"}

ERROR_POLICIES = ("fail", "omit")


def normalize_structure_group(structure_group: str) -> str:
    group = (structure_group or "").strip().lower()
    if group in ("area", "iteration"):
        group += "s"
    if group not in STRUCTURE_GROUPS:
        raise ValidationError(
            f"structureGroup must be one of {', '.join(STRUCTURE_GROUPS)}, got {structure_group!r}"
        )
    return group


def relative_node_path(path: Optional[str], project: str, structure_group: str) -> str:
    """Path below the structure group root.

    Accepts paths as the API reports them (``\\Project\\Area\\Team``), as
    shown in work item fields (``Project\\Team``) or already relative (``Team``).
    """
    segments = [s for s in (path or "").replace("/", "\\").split("\\") if s.strip()]
    if segments and segments[0].lower() == project.lower():
        segments = segments[1:]
        if segments and segments[0].lower() == _ROOT_SEGMENTS[structure_group]:
            segments = segments[1:]
    return "\\".join(segments)


def _positive_ids(ids: Optional[List[Any]]) -> List[int]:
    parsed = []
    for value in ids or []:
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"Node ids must be positive integers, got {value!r}")
        if number <= 0:
            raise ValidationError(f"Node ids must be positive integers, got {value!r}")
        parsed.append(number)
    return parsed


def _check_depth(depth: Optional[int]) -> None:
    if depth is not None and (not isinstance(depth, int) or depth < 0):
        raise ValidationError(f"depth must be a non-negative integer, got {depth!r}")


class ClassificationNodeService:
    """Lists, reads, creates and updates area and iteration nodes."""

    def __init__(self, nodes: IClassificationNodeRepository):
        self._nodes = nodes

    def get_node(
        self,
        credentials: Credentials,
        structure_group: str,
        path: str = "",
        depth: Optional[int] = None
    ) -> Dict[str, Any]:
        group = normalize_structure_group(structure_group)
        _check_depth(depth)
        relative = relative_node_path(path, credentials.project, group)
        return self._nodes.get_node(credentials, group, relative, depth)

    def list_nodes(
        self,
        credentials: Credentials,
        ids: Optional[List[Any]] = None,
        depth: Optional[int] = None,
        error_policy: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Nodes by id, or both root nodes when no ids are given."""
        _check_depth(depth)
        if error_policy is not None and error_policy.lower() not in ERROR_POLICIES:
            raise ValidationError(f"errorPolicy must be one of {', '.join(ERROR_POLICIES)}")
        node_ids = _positive_ids(ids)
        if not node_ids:
            return self._nodes.get_root_nodes(credentials, depth)
        return self._nodes.get_nodes(credentials, node_ids, depth, error_policy)

    def create_node(
        self,
        credentials: Credentials,
        structure_group: str,
        name: str,
        parent_path: str = "",
        attributes: Optional[Mapping[str, Any]] = None
    ) -> Dict[str, Any]:
        group = normalize_structure_group(structure_group)
        if not name or not name.strip():
            raise ValidationError("Node name is required")
        body: Dict[str, Any] = {"name": name.strip()}
        if attributes:
            body["attributes"] = dict(attributes)
        parent = relative_node_path(parent_path, credentials.project, group)
        node = self._nodes.create_node(credentials, group, parent, body)
        logger.info("classification_node_created", extra={"structure_group": group, "node_id": node.get("id")})
        return node

    def update_node(
        self,
        credentials: Credentials,
        structure_group: str,
        path: str,
        fields: Mapping[str, Any]
    ) -> Dict[str, Any]:
        """Rename a node or change its attributes (iteration start/finish dates).

        Raises:
            ValidationError: If the group is unknown, the path is the root,
                or no field is given
        """
        group = normalize_structure_group(structure_group)
        relative = relative_node_path(path, credentials.project, group)
        if not relative:
            raise ValidationError("A node path below the root is required for updates")
        body = node_body_from_patch(build_update_node(fields))
        node = self._nodes.update_node(credentials, group, relative, body)
        logger.info("classification_node_updated", extra={"structure_group": group, "node_id": node.get("id")})
        return node
