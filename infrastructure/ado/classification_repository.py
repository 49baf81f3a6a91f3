"""
Azure DevOps classification node (area/iteration) repository.
"""
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from core.config.deployment import ApiVersions
from core.domain.credentials import Credentials
from core.interfaces.repository import IClassificationNodeRepository
from .ado_repository import project_segment
from .http_client import ADOHttpClient


def encode_node_path(path: str) -> str:
    """Encode each segment of a node path; backslashes and slashes both separate."""
    segments = [s for s in path.replace("\\", "/").split("/") if s.strip()]
    return "/".join(quote(s.strip(), safe="") for s in segments)


class ADOClassificationNodeRepository(IClassificationNodeRepository):
    """Reads and writes nodes under ``_apis/wit/classificationnodes``."""

    def __init__(self, client: ADOHttpClient, api_versions: Optional[ApiVersions] = None):
        self._client = client
        self._versions = api_versions or ApiVersions()

    def _node_url(self, credentials: Credentials, structure_group: str, path: str = "") -> str:
        url = f"{project_segment(credentials)}/_apis/wit/classificationnodes/{structure_group}"
        encoded = encode_node_path(path)
        return f"{url}/{encoded}" if encoded else url

    def get_node(
        self,
        credentials: Credentials,
        structure_group: str,
        path: str = "",
        depth: Optional[int] = None
    ) -> Dict[str, Any]:
        params = {'$depth': depth} if depth is not None else None
        return self._client.send(
            'GET',
            self._node_url(credentials, structure_group, path),
            credentials,
            self._versions.api_version,
            params=params,
        ) or {}

    def get_nodes(
        self,
        credentials: Credentials,
        ids: List[int],
        depth: Optional[int] = None,
        error_policy: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {'ids': ",".join(str(int(i)) for i in ids)}
        if depth is not None:
            params['$depth'] = depth
        if error_policy:
            params['errorPolicy'] = error_policy
        data = self._client.send(
            'GET',
            f"{project_segment(credentials)}/_apis/wit/classificationnodes",
            credentials,
            self._versions.api_version,
            params=params,
        ) or {}
        return data.get('value', [])

    def get_root_nodes(self, credentials: Credentials, depth: Optional[int] = None) -> List[Dict[str, Any]]:
        params = {'$depth': depth} if depth is not None else None
        data = self._client.send(
            'GET',
            f"{project_segment(credentials)}/_apis/wit/classificationnodes",
            credentials,
            self._versions.api_version,
            params=params,
        ) or {}
        return data.get('value', [])

    def create_node(
        self,
        credentials: Credentials,
        structure_group: str,
        parent_path: str,
        body: Dict[str, Any]
    ) -> Dict[str, Any]:
        return self._client.send(
            'POST',
            self._node_url(credentials, structure_group, parent_path),
            credentials,
            self._versions.api_version,
            body=body,
        ) or {}

    def update_node(
        self,
        credentials: Credentials,
        structure_group: str,
        path: str,
        body: Dict[str, Any]
    ) -> Dict[str, Any]:
        return self._client.send(
            'PATCH',
            self._node_url(credentials, structure_group, path),
            credentials,
            self._versions.api_version,
            body=body,
        ) or {}
