"""
Credential resolution for inbound requests.

Each field is resolved independently, highest precedence first:
request headers, then the request body (or query string), then the
injected process defaults.
"""
from typing import Any, Iterable, Mapping, Optional

from core.domain.credentials import (
    Credentials,
    ProcessDefaults,
    is_usable_pat,
    normalize_org_url,
)
from core.domain.errors import MissingCredential

PAT_HEADERS = ("x-pat",)
ORG_URL_HEADERS = ("x-orgurl", "x-org-url")
PROJECT_HEADERS = ("x-project",)

PAT_KEYS = ("pat", "personalAccessToken")
ORG_URL_KEYS = ("orgUrl", "organizationUrl", "org")
PROJECT_KEYS = ("project",)


def _header(headers: Optional[Mapping[str, Any]], names: Iterable[str]) -> Optional[str]:
    if not headers:
        return None
    lowered = {str(k).lower(): v for k, v in headers.items()}
    for name in names:
        value = lowered.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _field(source: Optional[Mapping[str, Any]], names: Iterable[str]) -> Optional[str]:
    if not source:
        return None
    for name in names:
        value = source.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _first(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if value:
            return value
    return None


def _usable_pat(value: Optional[str]) -> Optional[str]:
    return value if is_usable_pat(value) else None


def resolve(
    headers: Optional[Mapping[str, Any]],
    body: Optional[Mapping[str, Any]],
    defaults: ProcessDefaults,
    query: Optional[Mapping[str, Any]] = None
) -> Credentials:
    """Resolve the effective identity of one request.

    Args:
        headers: Request headers (matched case-insensitively)
        body: Parsed JSON body
        defaults: Process-wide fallbacks
        query: Query-string parameters, consulted after the body

    Returns:
        Credentials with a normalized organization URL

    Raises:
        MissingCredential: If no PAT or no organization URL can be resolved
    """
    # The sample-config placeholder counts as unset at every tier.
    pat = _first(
        _usable_pat(_header(headers, PAT_HEADERS)),
        _usable_pat(_field(body, PAT_KEYS)),
        _usable_pat(_field(query, PAT_KEYS)),
        _usable_pat(defaults.personal_access_token),
    )
    if not pat:
        raise MissingCredential(
            "Personal Access Token is required: send the X-Pat header, a 'pat' "
            "field, or configure AZDO_PAT"
        )

    org_url = _first(
        _header(headers, ORG_URL_HEADERS),
        _field(body, ORG_URL_KEYS),
        _field(query, ORG_URL_KEYS),
        defaults.organization_url,
    )
    if not org_url:
        raise MissingCredential(
            "Organization URL is required: send the X-OrgUrl header, an 'orgUrl' "
            "field, or configure AZDO_ORG_URL"
        )

    project = _first(
        _header(headers, PROJECT_HEADERS),
        _field(body, PROJECT_KEYS),
        _field(query, PROJECT_KEYS),
        defaults.project,
    ) or ""

    if not org_url.lower().startswith(("http://", "https://")):
        org_url = f"https://dev.azure.com/{org_url.strip('/')}"

    return Credentials(
        organization_url=normalize_org_url(org_url, project),
        personal_access_token=pat.strip(),
        project=project,
    )
