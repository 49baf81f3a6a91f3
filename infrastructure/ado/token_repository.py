"""
Azure DevOps personal access token lifecycle repository.

PAT endpoints live on the organization's identity host (vssps), not on the
organization URL used for work items.
"""
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from core.config.deployment import ApiVersions
from core.domain.credentials import Credentials
from core.domain.errors import ValidationError
from core.interfaces.repository import ITokenRepository
from .http_client import ADOHttpClient


def identity_base_url(organization_url: str) -> str:
    """Derive the identity (vssps) host for an organization URL.

    ``https://dev.azure.com/org`` maps to ``https://vssps.dev.azure.com/org``
    and ``https://org.visualstudio.com`` to ``https://org.vssps.visualstudio.com``.
    Other hosts (on-premises servers) serve identity APIs themselves.
    """
    parsed = urlparse(organization_url)
    host = (parsed.hostname or "").lower()
    if host == "dev.azure.com":
        organization = parsed.path.strip("/").split("/")[0]
        return f"{parsed.scheme}://vssps.dev.azure.com/{organization}"
    if host.endswith(".visualstudio.com") and ".vssps." not in host:
        organization = host.split(".")[0]
        return f"{parsed.scheme}://{organization}.vssps.visualstudio.com"
    return organization_url.rstrip("/")


class ADOTokenRepository(ITokenRepository):
    """Lists, reads, updates and revokes PATs of the authenticated user."""

    def __init__(self, client: ADOHttpClient, api_versions: Optional[ApiVersions] = None):
        self._client = client
        self._versions = api_versions or ApiVersions()

    def _tokens_url(self, credentials: Credentials) -> str:
        return f"{identity_base_url(credentials.organization_url)}/_apis/tokens/pats"

    def _version(self) -> str:
        if not self._versions.tokens_api_version:
            raise ValidationError("Personal access token management is not available on this server")
        return self._versions.tokens_api_version

    def list_tokens(self, credentials: Credentials, params: Dict[str, Any]) -> Dict[str, Any]:
        return self._client.send(
            'GET', self._tokens_url(credentials), credentials, self._version(), params=params
        ) or {}

    def get_token(self, credentials: Credentials, authorization_id: str) -> Dict[str, Any]:
        return self._client.send(
            'GET',
            self._tokens_url(credentials),
            credentials,
            self._version(),
            params={'authorizationId': authorization_id},
        ) or {}

    def update_token(self, credentials: Credentials, body: Dict[str, Any]) -> Dict[str, Any]:
        return self._client.send(
            'PUT', self._tokens_url(credentials), credentials, self._version(), body=body
        ) or {}

    def revoke_token(self, credentials: Credentials, authorization_id: str) -> None:
        self._client.send(
            'DELETE',
            self._tokens_url(credentials),
            credentials,
            self._version(),
            params={'authorizationId': authorization_id},
        )
